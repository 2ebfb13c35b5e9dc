"""Inbound trigger for the moment-window dispatcher.

Called on a fixed cadence by an external scheduler. The Celery beat task in
``moments.tasks.dispatch_tasks`` runs the same pass.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from moments.dependencies import get_moment_window_dispatcher, verify_dispatch_trigger
from moments.schemas.dispatch import DispatchEmptyResponse, DispatchErrorResponse, DispatchResponse
from moments.services.dispatcher import MomentWindowDispatcher, ScheduleFetchError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/moment-windows", tags=["dispatch"])


@router.post(
    "/dispatch",
    dependencies=[Depends(verify_dispatch_trigger)],
    response_model=DispatchResponse | DispatchEmptyResponse,
    responses={500: {"model": DispatchErrorResponse}},
)
async def dispatch_moment_windows(
    dispatcher: MomentWindowDispatcher = Depends(get_moment_window_dispatcher),
):
    """Run one dispatch pass over due schedules.

    Partial per-schedule failures still return 200; only a failed batch
    query returns 500.
    """
    try:
        result = await dispatcher.run()
    except ScheduleFetchError as e:
        logger.error("Dispatch aborted, schedule query failed: %s", e)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to query schedules", "details": str(e)},
        )
    return JSONResponse(status_code=200, content=result.to_response())

"""
Pipeline API Endpoints.

Kanban board of chat sessions by pipeline stage, and card moves.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from api.converters import session_response
from api.dependencies import get_state
from api.models import (
    MoveRequest,
    MoveResponse,
    NotificationResponse,
    PipelineColumnResponse,
    PipelineResponse,
)
from domain.pipeline_board import DateFilter
from services.app_state import AppState
from services.pipeline_service import board_columns, move_session

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/pipeline",
    response_model=PipelineResponse,
    summary="Pipeline Board",
    description="Sessions grouped by pipeline stage, most recent activity first.",
)
def get_pipeline(
    date_filter: str = Query("all", description="Activity window: '7', '30', '90' or 'all'"),
    refresh: bool = Query(False, description="Reload sessions even when realtime keeps the cache current"),
    state: AppState = Depends(get_state),
):
    try:
        window = DateFilter(date_filter)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid date_filter. Got '{date_filter}'")

    if refresh:
        state.mark_sessions_stale()
    columns = board_columns(state, window)
    return PipelineResponse(
        date_filter=window.value,
        columns=[
            PipelineColumnResponse(
                stage=stage.value,
                label=stage.label,
                sessions=[session_response(session) for session in sessions],
            )
            for stage, sessions in columns.items()
        ],
    )


@router.post(
    "/pipeline/{session_id}/move",
    response_model=MoveResponse,
    summary="Move Session",
    description="Drop a card onto a stage column or onto another card; a failed write reverts the card.",
    responses={502: {"model": MoveResponse, "description": "Stage write failed; the card was reverted"}},
)
def move_card(
    session_id: str,
    request: MoveRequest,
    response: Response,
    state: AppState = Depends(get_state),
):
    """
    **Example request:**
    ```json
    {"over_id": "cotizado"}
    ```

    Unknown drop targets give 400. A failed write gives 502 with the
    reverted card and the error notification in the body.
    """
    result = move_session(state, session_id, request.over_id)
    if result.session is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    notification = result.notification
    if not result.success:
        if notification is None:
            raise HTTPException(status_code=400, detail=f"Invalid drop target. Got '{request.over_id}'")
        response.status_code = 502
    return MoveResponse(
        success=result.success,
        session=session_response(result.session),
        notification=(
            NotificationResponse(level=notification.level.value, message=notification.message)
            if notification is not None
            else None
        ),
    )

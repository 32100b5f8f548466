"""Meeting invitation endpoints."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ..core.config import Settings
from ..dependencies import get_app_settings, get_notifier, get_registry
from ..schemas import meetings as meetings_schema
from ..services import meetings as meetings_service
from ..services.notifications import InvitationNotifier
from ..services.registry import InvalidSlotFormatError, MeetingNotFoundError, MeetingRegistry
from ..services.tokens import TokenExhaustedError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=meetings_schema.CreateMeetingResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting(
    payload: meetings_schema.CreateMeetingRequest,
    registry: MeetingRegistry = Depends(get_registry),
    notifier: InvitationNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_app_settings),
) -> meetings_schema.CreateMeetingResponse | JSONResponse:
    """Create a meeting invitation and deliver its link to the recipient."""

    try:
        result = await meetings_service.create_meeting(
            payload,
            registry,
            notifier,
            frontend_base_url=settings.frontend_base_url,
        )
    except meetings_service.MissingContactError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TokenExhaustedError as exc:
        logger.exception("Could not allocate a meeting id")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not allocate a meeting id.",
        ) from exc

    if result.notification is meetings_schema.NotificationStatus.FAILED:
        # The meeting exists; hand back its id so the caller can share it another way.
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={
                "success": False,
                "code": "NOTIFICATION_FAILED",
                "message": "Failed to send meeting invitation.",
                **result.model_dump(mode="json"),
            },
        )
    return result


@router.post("/{meeting_id}/slot", response_model=meetings_schema.ConfirmSlotResponse)
async def confirm_slot(
    meeting_id: str,
    payload: meetings_schema.ConfirmSlotRequest,
    registry: MeetingRegistry = Depends(get_registry),
) -> meetings_schema.ConfirmSlotResponse:
    """Confirm the invitee's chosen time slot."""

    try:
        return await meetings_service.confirm_slot(meeting_id, payload, registry)
    except MeetingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meeting not found.") from exc
    except InvalidSlotFormatError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid slot time format. Expected HH:MM.",
        ) from exc


@router.get("/{meeting_id}/validate", response_model=meetings_schema.ValidateMeetingResponse)
async def validate_meeting(
    meeting_id: str,
    registry: MeetingRegistry = Depends(get_registry),
) -> meetings_schema.ValidateMeetingResponse:
    """Return whether the invitation is still valid and the confirmed slot, if any."""

    return await meetings_service.validate_meeting(meeting_id, registry)

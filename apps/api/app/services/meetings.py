"""Meeting lifecycle operations used by the HTTP layer."""
from __future__ import annotations

import logging

from ..schemas import meetings as schemas
from .notifications import InvitationNotifier, NotificationError
from .registry import MeetingRegistry, ValidationReason

logger = logging.getLogger(__name__)

JOIN_PATH = "/schedule/{meeting_id}"

VALIDATION_MESSAGES = {
    ValidationReason.NOT_FOUND: "Meeting not found.",
    ValidationReason.EXPIRED: "This meeting invitation link has expired.",
}


class MissingContactError(ValueError):
    """Raised when a meeting is requested without a recipient contact."""


def build_join_link(frontend_base_url: str, meeting_id: str) -> str:
    return frontend_base_url.rstrip("/") + JOIN_PATH.format(meeting_id=meeting_id)


async def create_meeting(
    payload: schemas.CreateMeetingRequest,
    registry: MeetingRegistry,
    notifier: InvitationNotifier,
    *,
    frontend_base_url: str,
) -> schemas.CreateMeetingResponse:
    """Create a pending meeting and send the invitation link.

    A delivery failure is reported through ``notification`` and leaves the
    meeting in place.
    """

    contact = (payload.contact or "").strip()
    if not contact:
        raise MissingContactError("Recipient contact is required.")

    meeting = await registry.create(contact)
    join_link = build_join_link(frontend_base_url, meeting.id)
    expires_in = int(registry.ttl.total_seconds())

    notification = schemas.NotificationStatus.SENT
    try:
        await notifier.send_invitation(contact, join_link, meeting.id, expires_in)
    except NotificationError as exc:
        logger.warning("Meeting %s created but invitation failed: %s", meeting.id, exc)
        notification = schemas.NotificationStatus.FAILED

    return schemas.CreateMeetingResponse(
        meeting_id=meeting.id,
        expires_at=meeting.expires_at,
        join_link=join_link,
        notification=notification,
    )


async def confirm_slot(
    meeting_id: str,
    payload: schemas.ConfirmSlotRequest,
    registry: MeetingRegistry,
) -> schemas.ConfirmSlotResponse:
    """Confirm the invitee's slot choice."""

    meeting = await registry.confirm_slot(meeting_id, payload.slot_time or "")
    return schemas.ConfirmSlotResponse(message=f"Slot {meeting.slot_time} confirmed successfully.")


async def validate_meeting(meeting_id: str, registry: MeetingRegistry) -> schemas.ValidateMeetingResponse:
    """Report whether the invitation link is still usable."""

    result = await registry.validate(meeting_id)
    if result.valid:
        return schemas.ValidateMeetingResponse(
            valid=True,
            meeting_id=result.meeting_id,
            slot_time=result.slot_time,
        )

    reason = result.reason or ValidationReason.NOT_FOUND
    return schemas.ValidateMeetingResponse(
        valid=False,
        meeting_id=result.meeting_id,
        reason=reason.value,
        message=VALIDATION_MESSAGES[reason],
    )

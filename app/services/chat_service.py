"""
Conversational booking assistant.

Nothing is stored between turns: every request carries the whole
transcript (plus the slots offered last turn), and the step is re-derived
from it. The model steers the side effects with two directives embedded
in its reply:

    [SHOW_SLOTS:<interview type id>]        rank and list open times
    [CREATE_APPOINTMENT:<zero-based index>] book one of the offered times

Directives are stripped before the reply is shown to the member.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AssistantError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from app.models.interview_type import InterviewType
from app.models.ward import Ward
from app.services.appointment_service import create_appointment, get_scheduled_appointments
from app.services.assistant_client import AssistantClient
from app.services.calendar_gateway import CalendarGateway
from app.services.slot_service import (
    TimeSlot,
    format_time_slots,
    optimize_slots,
    resolve_available_slots,
)
from app.services.ward_service import get_ward, list_active_interview_types

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
NAME_PROMPT_RE = re.compile(r"\bname\b", re.IGNORECASE)
NAME_PREFIX_RE = re.compile(r"^(?:hi|hello|hey)?[,!\s]*(?:my name is|my name's|i'm|i am|this is|it's|it is)\s+", re.IGNORECASE)
SHOW_SLOTS_RE = re.compile(r"\[SHOW_SLOTS:\s*([^\]]+?)\s*\]")
CREATE_APPOINTMENT_RE = re.compile(r"\[CREATE_APPOINTMENT:\s*(\d+)\s*\]")

APOLOGY_MESSAGE = (
    "I apologize, but I encountered an error. Please try again or contact "
    "your ward's executive secretary for assistance."
)
SLOT_TAKEN_MESSAGE = (
    "I'm sorry, that time was just taken by someone else. "
    "Would you like me to show you the remaining open times?"
)
MISSING_DETAILS_MESSAGE = (
    "Before I can book that time I still need your name, your email address "
    "and the type of interview."
)
UNKNOWN_SLOT_MESSAGE = (
    "I couldn't find that time in the list I showed you. "
    "Could you pick one of the numbered times, or should I look again?"
)
BOOKED_MESSAGE = (
    "Your appointment has been scheduled! You'll receive a confirmation email "
    "shortly with calendar details."
)


@dataclass
class ConversationState:
    step: str = "greeting"
    member_name: str | None = None
    member_email: str | None = None
    member_phone: str | None = None
    interview_type_id: int | None = None


@dataclass
class ChatAction:
    kind: str  # "show_slots" | "create_appointment"
    interview_type_ref: str | None = None
    slot_index: int | None = None


@dataclass
class ChatReply:
    message: str
    slots: list[TimeSlot] = field(default_factory=list)
    interview_type_id: int | None = None
    appointment_id: int | None = None


def _clean_name(text: str) -> str | None:
    name = NAME_PREFIX_RE.sub("", text.strip()).strip(" .!,")
    if not name or len(name.split()) > 5 or any(ch.isdigit() for ch in name):
        return None
    return name


def extract_state(messages: Sequence[dict], has_offered_slots: bool = False) -> ConversationState:
    """Best-effort guess at how far the conversation has got.

    An email-shaped token in any user message moves past the email step. A
    short reply to an assistant question mentioning "name" is taken as the
    member's name.
    """
    state = ConversationState()
    last_assistant = ""
    for msg in messages:
        role = msg.get("role")
        content = msg.get("content") or ""
        if role == "assistant":
            last_assistant = content
            if state.step == "greeting":
                state.step = "name"
            continue
        if role != "user":
            continue
        email_match = EMAIL_RE.search(content)
        if email_match:
            state.member_email = email_match.group(0)
            state.step = "interview_type"
        elif not state.member_name and NAME_PROMPT_RE.search(last_assistant):
            state.member_name = _clean_name(content)
            if state.member_name and state.step in ("greeting", "name"):
                state.step = "email"
    if has_offered_slots and state.member_email:
        state.step = "viewing_slots"
    return state


def build_system_prompt(
    ward: Ward, interview_types: Sequence[InterviewType], state: ConversationState
) -> str:
    types_list = "\n".join(
        f"- {it.name} (id: {it.id}, {it.duration} minutes): {it.description or ''}".rstrip(": ")
        for it in interview_types
    ) or "- (no interview types are currently offered)"
    stake = f" in the {ward.stake}" if ward.stake else ""
    known = []
    if state.member_name:
        known.append(f"Member name: {state.member_name}")
    if state.member_email:
        known.append(f"Member email: {state.member_email}")
    known_block = "\n".join(known)

    return f"""You are a friendly and helpful scheduling assistant for {ward.name}{stake}. Your job is to help ward members schedule interviews with bishopric members.

You should:
1. Be warm, friendly, and respectful
2. Guide the conversation naturally through these steps:
   - Get their name
   - Get their email address
   - Ask what type of interview they need
   - Show them available times
   - Confirm their selection and book the appointment
3. Be flexible and understanding if they need to reschedule or have questions

Available interview types:
{types_list}

Current conversation state: {state.step}
{known_block}

Important guidelines:
- Always collect name and email before showing available times
- When the user selects an interview type, include exactly: [SHOW_SLOTS:<interview type id>]
- When the user confirms one of the listed times, include exactly: [CREATE_APPOINTMENT:<slot index>] where the index is zero-based (the first listed time is 0)
- Be conversational and natural - don't sound robotic
- If someone asks about multiple interviews or special circumstances, offer to have the executive secretary contact them

Keep responses concise and friendly."""


def parse_response(text: str) -> tuple[str, ChatAction | None]:
    """Split the model's reply into display text and at most one directive."""
    show = SHOW_SLOTS_RE.search(text)
    if show:
        return text.replace(show.group(0), "").strip(), ChatAction(
            kind="show_slots", interview_type_ref=show.group(1)
        )
    create = CREATE_APPOINTMENT_RE.search(text)
    if create:
        return text.replace(create.group(0), "").strip(), ChatAction(
            kind="create_appointment", slot_index=int(create.group(1))
        )
    return text.strip(), None


def match_interview_type(
    interview_types: Sequence[InterviewType], ref: str
) -> InterviewType:
    """Find an offered interview type by id, falling back to a name match."""
    ref = ref.strip()
    for it in interview_types:
        if str(it.id) == ref:
            return it
    for it in interview_types:
        if it.name.lower() == ref.lower():
            return it
    raise NotFoundError(f"Interview type {ref!r} not offered in this ward")


def _join(*parts: str) -> str:
    return "\n\n".join(p for p in parts if p)


async def _show_slots(
    session: AsyncSession,
    gateway: CalendarGateway,
    ward: Ward,
    interview_types: Sequence[InterviewType],
    message: str,
    action: ChatAction,
) -> ChatReply:
    interview_type = match_interview_type(interview_types, action.interview_type_ref or "")
    slots = await resolve_available_slots(session, gateway, ward.id, interview_type.id)
    existing = await get_scheduled_appointments(session, ward.id)
    ranked = optimize_slots(slots, existing)
    limit = settings.slot_display_limit
    listing = format_time_slots(ranked, limit)
    if not ranked:
        return ChatReply(message=_join(message, listing), interview_type_id=interview_type.id)
    return ChatReply(
        message=_join(
            message,
            "Here are the best available times:",
            listing,
            "Which time works best for you? You can respond with the number.",
        ),
        slots=ranked[:limit],
        interview_type_id=interview_type.id,
    )


async def _book_slot(
    session: AsyncSession,
    gateway: CalendarGateway,
    ward: Ward,
    state: ConversationState,
    message: str,
    action: ChatAction,
    offered_slots: Sequence[TimeSlot],
    interview_type_id: int | None,
    member_name: str | None,
    member_email: str | None,
    member_phone: str | None,
) -> ChatReply:
    index = action.slot_index
    if index is None or not 0 <= index < len(offered_slots):
        return ChatReply(message=_join(message, UNKNOWN_SLOT_MESSAGE))
    slot = offered_slots[index]
    try:
        appointment_id = await create_appointment(
            session,
            gateway,
            ward.id,
            interview_type_id or state.interview_type_id,
            member_name or state.member_name,
            member_email or state.member_email,
            member_phone or state.member_phone,
            slot,
        )
    except SlotConflictError as e:
        logger.info("Chat booking lost the slot: %s", e)
        return ChatReply(message=_join(message, SLOT_TAKEN_MESSAGE))
    except ValidationError as e:
        logger.info("Chat booking rejected: %s", e)
        return ChatReply(message=_join(message, MISSING_DETAILS_MESSAGE))
    return ChatReply(message=_join(message, BOOKED_MESSAGE), appointment_id=appointment_id)


async def handle_chat(
    session: AsyncSession,
    gateway: CalendarGateway,
    assistant: AssistantClient | None,
    ward_id: int,
    messages: Sequence[dict],
    offered_slots: Sequence[TimeSlot] = (),
    interview_type_id: int | None = None,
    member_name: str | None = None,
    member_email: str | None = None,
    member_phone: str | None = None,
) -> ChatReply:
    """Run one chat turn. Never raises; failures become the apology message."""
    try:
        if assistant is None:
            raise AssistantError("Chat assistant is not configured")
        ward = await get_ward(session, ward_id)
        interview_types = await list_active_interview_types(session, ward.id)
        state = extract_state(messages, has_offered_slots=bool(offered_slots))
        state.interview_type_id = interview_type_id
        system_prompt = build_system_prompt(ward, interview_types, state)
        raw = await assistant.reply(
            system_prompt,
            [{"role": m["role"], "content": m["content"]} for m in messages],
        )
        message, action = parse_response(raw)
        if action is None:
            return ChatReply(message=message)
        if action.kind == "show_slots":
            return await _show_slots(session, gateway, ward, interview_types, message, action)
        return await _book_slot(
            session,
            gateway,
            ward,
            state,
            message,
            action,
            offered_slots,
            interview_type_id,
            member_name,
            member_email,
            member_phone,
        )
    except Exception as e:
        logger.exception("Error in chat turn for ward %s: %s", ward_id, e)
        return ChatReply(message=APOLOGY_MESSAGE)

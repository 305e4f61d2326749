"""API routes: read-only views of events and scaffolds, plus a trigger for the scaffold check."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import AsyncIterator, Optional

import httpx
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.ext.asyncio import async_sessionmaker

import config
from squash.models import EventStatus
from squash.models.base import async_session_factory
from squash.repos.event import EventRepo
from squash.repos.participant import MembershipRepo
from squash.repos.payment import PaymentRepo
from squash.repos.scaffold import ScaffoldRepo

logger = logging.getLogger("squash.api")

router = APIRouter(prefix="/api", tags=["events"])


def get_session_factory() -> async_sessionmaker:
    return async_session_factory


async def get_bot_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(base_url=config.BOT_INTERNAL_URL.rstrip("/"), timeout=30.0) as client:
        yield client


def _snowflake(v):
    # Discord IDs exceed 2^53; send them as strings so JS keeps precision
    return str(v) if v is not None else None


# --- Pydantic schemas ---


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    scaffold_id: Optional[str]
    starts_at: datetime
    courts: int
    status: str
    message_id: Optional[str] = None
    owner_id: Optional[str] = None

    @field_validator("message_id", "owner_id", mode="before")
    @classmethod
    def _ids_as_str(cls, v):
        return _snowflake(v)

    @field_validator("status", mode="before")
    @classmethod
    def _status_value(cls, v):
        return getattr(v, "value", v)


class ParticipantEntry(BaseModel):
    participant_id: str
    name: str
    participations: int


class PaymentEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    amount: int
    is_paid: bool
    paid_at: Optional[datetime] = None


class EventDetailResponse(EventResponse):
    participants: list[ParticipantEntry] = []
    payments: list[PaymentEntry] = []


class ScaffoldResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    day_of_week: str
    time: str
    default_courts: int
    is_active: bool
    announcement_deadline: Optional[str] = None
    owner_id: Optional[str] = None

    @field_validator("owner_id", mode="before")
    @classmethod
    def _owner_as_str(cls, v):
        return _snowflake(v)


# --- Routes ---


@router.get("/events", response_model=list[EventResponse])
async def list_events(
    include_cancelled: bool = False,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Events soonest first. Cancelled ones only on request; deleted ones never."""
    events = await EventRepo(session_factory).get_events()
    if not include_cancelled:
        events = [e for e in events if e.status != EventStatus.CANCELLED]
    return events


@router.get("/events/{event_id}", response_model=EventDetailResponse)
async def get_event(event_id: str, session_factory: async_sessionmaker = Depends(get_session_factory)):
    event = await EventRepo(session_factory).find_by_id(event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    memberships = await MembershipRepo(session_factory).get_event_participants(event.id)
    payments = await PaymentRepo(session_factory).get_payments_by_event(event.id)
    # Built from the flat fields: relationships on the detached event are not loaded
    return EventDetailResponse(
        **EventResponse.model_validate(event).model_dump(),
        participants=[
            ParticipantEntry(
                participant_id=m.participant_id, name=m.participant.label, participations=m.participations
            )
            for m in memberships
        ],
        payments=[PaymentEntry.model_validate(p) for p in payments],
    )


@router.get("/scaffolds", response_model=list[ScaffoldResponse])
async def list_scaffolds(session_factory: async_sessionmaker = Depends(get_session_factory)):
    return await ScaffoldRepo(session_factory).get_scaffolds()


def require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    if not config.API_KEY:
        raise HTTPException(status_code=503, detail="API key not configured")
    if x_api_key != config.API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")


@router.post("/check-events", dependencies=[Depends(require_api_key)])
async def check_events(client: httpx.AsyncClient = Depends(get_bot_client)):
    """Ask the bot to run the scaffold check now (for external cron)."""
    if not config.INTERNAL_API_SECRET:
        raise HTTPException(status_code=503, detail="Bot internal API not configured")
    try:
        r = await client.post(
            "/internal/check-events",
            headers={"Authorization": f"Bearer {config.INTERNAL_API_SECRET}"},
        )
    except httpx.HTTPError as e:
        logger.warning("Bot unreachable for check-events: %s", e)
        raise HTTPException(status_code=502, detail="Bot unreachable") from e
    if r.status_code != 200:
        raise HTTPException(status_code=502, detail=f"Bot returned {r.status_code}")
    return r.json()

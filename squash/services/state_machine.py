"""Event status transitions."""
from __future__ import annotations

from enum import Enum

from squash.errors import InvalidTransition
from squash.models import EventStatus


class Action(str, Enum):
    ANNOUNCE = "announce"
    JOIN = "join"
    LEAVE = "leave"
    ADD_COURT = "add-court"
    REMOVE_COURT = "remove-court"
    FINALIZE = "finalize"
    UNFINALIZE = "unfinalize"
    CANCEL = "cancel"
    RESTORE = "restore"
    MARK_PAID = "mark-paid"
    MARK_UNPAID = "mark-unpaid"


_C = EventStatus.CREATED
_A = EventStatus.ANNOUNCED
_X = EventStatus.CANCELLED
_F = EventStatus.FINALIZED

# (from, action) -> to. finished / paid are reserved and appear nowhere.
TRANSITIONS: dict[tuple[EventStatus, Action], EventStatus] = {
    (_C, Action.ANNOUNCE): _A,
    (_C, Action.JOIN): _C,
    (_A, Action.JOIN): _A,
    (_C, Action.LEAVE): _C,
    (_A, Action.LEAVE): _A,
    (_C, Action.ADD_COURT): _C,
    (_A, Action.ADD_COURT): _A,
    (_C, Action.REMOVE_COURT): _C,
    (_A, Action.REMOVE_COURT): _A,
    (_A, Action.FINALIZE): _F,
    (_C, Action.CANCEL): _X,
    (_A, Action.CANCEL): _X,
    (_F, Action.CANCEL): _X,
    (_X, Action.RESTORE): _A,
    (_F, Action.UNFINALIZE): _A,
    (_F, Action.MARK_PAID): _F,
    (_F, Action.MARK_UNPAID): _F,
}


def can(status: EventStatus, action: Action) -> bool:
    return (EventStatus(status), action) in TRANSITIONS


def next_status(event, action: Action) -> EventStatus:
    """Target status for `action` on `event`, or InvalidTransition."""
    status = EventStatus(event.status)
    if not can(status, action):
        raise InvalidTransition(event.id, status, action)
    return TRANSITIONS[(status, action)]

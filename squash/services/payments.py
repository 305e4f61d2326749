"""Cost split for a finalized event."""
from __future__ import annotations

from typing import Iterable


def round_half_up(numerator: int, denominator: int) -> int:
    """Round numerator/denominator to the nearest integer, ties away from zero."""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    sign = -1 if numerator < 0 else 1
    q, r = divmod(abs(numerator), denominator)
    if 2 * r >= denominator:
        q += 1
    return sign * q


def allocate_payments(court_price: int, courts: int, memberships: Iterable) -> dict[str, int]:
    """participant_id -> amount owed, proportional to participations.

    Each share is rounded on its own; the sum can drift from the total by a
    unit or two and is not reconciled.
    """
    memberships = list(memberships)
    total_participations = sum(m.participations for m in memberships)
    if total_participations <= 0:
        raise ValueError("Cannot allocate payments without participants")
    total_cost = court_price * courts
    return {
        m.participant_id: round_half_up(total_cost * m.participations, total_participations)
        for m in memberships
    }

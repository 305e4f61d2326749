"""Payment repository."""
from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from squash.models import Payment
from squash.models.base import async_session_factory, utcnow


class PaymentRepo:
    def __init__(self, session_factory: async_sessionmaker = async_session_factory):
        self._session_factory = session_factory

    async def create_payment(self, event_id: str, participant_id: str, amount: int) -> Payment:
        payment = Payment(
            event_id=event_id,
            participant_id=participant_id,
            amount=amount,
            is_paid=False,
            reminder_count=0,
        )
        async with self._session_factory() as session:
            session.add(payment)
            await session.commit()
            await session.refresh(payment)
        return payment

    async def get_payments_by_event(self, event_id: str) -> list[Payment]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Payment).where(Payment.event_id == event_id).order_by(Payment.id)
            )
            return list(result.scalars().all())

    async def find_by_event_and_participant(self, event_id: str, participant_id: str) -> Optional[Payment]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Payment).where(
                    Payment.event_id == event_id,
                    Payment.participant_id == participant_id,
                )
            )
            return result.scalar_one_or_none()

    async def _update(self, payment_id: int, **fields) -> Optional[Payment]:
        async with self._session_factory() as session:
            payment = await session.get(Payment, payment_id)
            if not payment:
                return None
            for name, value in fields.items():
                setattr(payment, name, value)
            await session.commit()
            await session.refresh(payment)
            return payment

    async def mark_as_paid(self, payment_id: int) -> Optional[Payment]:
        return await self._update(payment_id, is_paid=True, paid_at=utcnow())

    async def mark_as_unpaid(self, payment_id: int) -> Optional[Payment]:
        return await self._update(payment_id, is_paid=False, paid_at=None)

    async def update_personal_message_id(self, payment_id: int, message_id: Optional[int]) -> Optional[Payment]:
        return await self._update(payment_id, personal_message_id=message_id)

    async def delete_by_event(self, event_id: str) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(Payment).where(Payment.event_id == event_id))
            await session.commit()
            return result.rowcount

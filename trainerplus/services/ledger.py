"""
Subscription Ledger

The only component allowed to change a subscription's remaining credit
balance or its status. Every mutating operation either applies a transition
permitted by ``TRANSITIONS`` or raises without touching the row.

A ledger is bound to one SQLAlchemy session; obtain one through
``trainerplus.services.unit_of_work.unit_of_work`` so that lock, decrement and
whatever follows commit or roll back together.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, case, or_

from trainerplus.models.subscription import Subscription, SubscriptionStatus, can_transition
from trainerplus.models.club import Group
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.metrics import record
from trainerplus.services.structured_logging import get_logger
from trainerplus.utils.time import utcnow

logger = get_logger(__name__)

ACTIVE = SubscriptionStatus.ACTIVE.value


class SubscriptionLedger:

    def __init__(self, session):
        self.session = session

    # -- reads -------------------------------------------------------------

    def get(self, subscription_id: str, lock: bool = False) -> Subscription:
        query = select(Subscription).where(Subscription.id == subscription_id)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        sub = self.session.execute(query).scalars().first()
        if sub is None:
            raise not_found("subscription")
        return sub

    def find_eligible(self, student_id: str, group_id: str, at_time: datetime, lock: bool = True) -> Subscription:
        """
        Earliest-starting active subscription with credit left whose validity
        window contains ``at_time``.

        With ``lock`` the candidate row is selected FOR UPDATE so concurrent
        marks against the same subscription serialize on it.
        """
        query = (
            select(Subscription)
            .where(
                Subscription.student_id == student_id,
                Subscription.group_id == group_id,
                Subscription.status == ACTIVE,
                Subscription.remaining_sessions > 0,
                or_(Subscription.starts_at.is_(None), Subscription.starts_at <= at_time),
                or_(Subscription.expires_at.is_(None), Subscription.expires_at >= at_time),
            )
            .order_by(
                Subscription.starts_at.is_(None),
                Subscription.starts_at.asc(),
                Subscription.created_at.asc(),
            )
            .limit(1)
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)

        sub = self.session.execute(query).scalars().first()
        if sub is None:
            raise CoreError(
                ErrorKind.NOT_FOUND,
                "no active subscription found for this student and group",
            )
        return sub

    def list_for_student(self, student_id: str) -> List[Subscription]:
        return list(self.session.execute(
            select(Subscription)
            .where(Subscription.student_id == student_id)
            .order_by(Subscription.created_at.desc())
        ).scalars())

    def list_for_group(self, group_id: str, status: Optional[str] = None) -> List[Subscription]:
        query = select(Subscription).where(Subscription.group_id == group_id)
        if status:
            query = query.where(Subscription.status == status)
        return list(self.session.execute(query.order_by(Subscription.created_at.desc())).scalars())

    def list_for_club(self, club_id: str, status: Optional[str] = None) -> List[Subscription]:
        query = select(Subscription).join(Group, Subscription.group_id == Group.id).where(Group.club_id == club_id)
        if status:
            query = query.where(Subscription.status == status)
        return list(self.session.execute(query.order_by(Subscription.created_at.desc())).scalars())

    # -- writes ------------------------------------------------------------

    def create(self,
               student_id: str,
               group_id: str,
               total_sessions: int,
               price: Decimal,
               status: SubscriptionStatus = SubscriptionStatus.PENDING,
               starts_at: Optional[datetime] = None,
               expires_at: Optional[datetime] = None) -> Subscription:
        """Open a new subscription with its full credit balance."""
        if total_sessions <= 0:
            raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "total_sessions must be positive")
        if status not in (SubscriptionStatus.PENDING, SubscriptionStatus.ACTIVE):
            raise CoreError(ErrorKind.INVALID_TRANSITION, f"cannot create a subscription as {status.value}")
        if status == SubscriptionStatus.ACTIVE and starts_at is None:
            starts_at = utcnow()

        sub = Subscription(
            student_id=student_id,
            group_id=group_id,
            total_sessions=total_sessions,
            remaining_sessions=total_sessions,
            price=price,
            starts_at=starts_at,
            expires_at=expires_at,
            status=status.value,
        )
        self.session.add(sub)
        self.session.flush()
        logger.log_ledger_event("created", sub.id, status=sub.status, total_sessions=total_sessions)
        return sub

    def decrement(self, subscription_id: str) -> Subscription:
        """
        Consume one credit.

        A single guarded UPDATE lowers the balance and, when it reaches zero,
        flips the status to ``used`` in the same statement. Losing the race
        for the last credit affects no rows and raises CONFLICT.
        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status == ACTIVE,
                Subscription.remaining_sessions > 0,
            )
            .values(
                remaining_sessions=Subscription.remaining_sessions - 1,
                status=case(
                    (Subscription.remaining_sessions == 1, SubscriptionStatus.USED.value),
                    else_=Subscription.status,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount == 0:
            raise CoreError(ErrorKind.CONFLICT, "subscription has no remaining sessions")

        sub = self.get(subscription_id)
        self.session.refresh(sub)
        record("record_credit_consumed")
        logger.log_ledger_event("decremented", subscription_id,
                                remaining=sub.remaining_sessions, status=sub.status)
        return sub

    def activate(self,
                 subscription_id: str,
                 starts_at: Optional[datetime] = None,
                 expires_at: Optional[datetime] = None) -> Subscription:
        """pending -> active. Re-activating an active subscription is a no-op."""
        sub = self.get(subscription_id, lock=True)
        if sub.status == ACTIVE:
            logger.log_ledger_event("activate_noop", subscription_id)
            return sub
        self._check_transition(sub, SubscriptionStatus.ACTIVE)

        sub.status = ACTIVE
        sub.starts_at = starts_at or sub.starts_at or utcnow()
        if expires_at is not None:
            sub.expires_at = expires_at
        self.session.flush()
        logger.log_ledger_event("activated", subscription_id,
                                starts_at=sub.starts_at, expires_at=sub.expires_at)
        return sub

    def cancel(self, subscription_id: str) -> Subscription:
        sub = self.get(subscription_id, lock=True)
        if sub.status == SubscriptionStatus.CANCELLED.value:
            raise CoreError(ErrorKind.CONFLICT, "subscription is already cancelled")
        self._check_transition(sub, SubscriptionStatus.CANCELLED)

        sub.status = SubscriptionStatus.CANCELLED.value
        self.session.flush()
        logger.log_ledger_event("cancelled", subscription_id)
        return sub

    def expire(self, subscription_id: str) -> Subscription:
        sub = self.get(subscription_id, lock=True)
        self._check_transition(sub, SubscriptionStatus.EXPIRED)

        sub.status = SubscriptionStatus.EXPIRED.value
        self.session.flush()
        logger.log_ledger_event("expired", subscription_id)
        return sub

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """Expire every active subscription whose validity window has closed."""
        now = now or utcnow()
        result = self.session.execute(
            update(Subscription)
            .where(
                Subscription.status == ACTIVE,
                Subscription.expires_at.is_not(None),
                Subscription.expires_at < now,
            )
            .values(status=SubscriptionStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        self.session.expire_all()
        logger.info("Expired overdue subscriptions", count=result.rowcount, cutoff=now)
        return result.rowcount

    def restore(self, subscription_id: str) -> bool:
        """
        Give one credit back to a still-active subscription.

        Terminal subscriptions are never re-opened; returns False when nothing
        was restored.
        """
        result = self.session.execute(
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.status == ACTIVE,
                Subscription.remaining_sessions < Subscription.total_sessions,
            )
            .values(remaining_sessions=Subscription.remaining_sessions + 1)
            .execution_options(synchronize_session=False)
        )
        restored = result.rowcount == 1
        if restored:
            self.session.refresh(self.get(subscription_id))
            logger.log_ledger_event("restored", subscription_id)
        else:
            logger.warning("Credit not restored; subscription is not active",
                           subscription_id=subscription_id)
        return restored

    @staticmethod
    def _check_transition(sub: Subscription, target: SubscriptionStatus):
        if not can_transition(sub.status, target.value):
            raise CoreError(
                ErrorKind.INVALID_TRANSITION,
                f"cannot move subscription from {sub.status} to {target.value}",
                {"subscription_id": sub.id, "from": sub.status, "to": target.value},
            )

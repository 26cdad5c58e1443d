"""
Payment Reconciler

Opens provider checkouts for pending subscriptions and reconciles signed
provider webhooks against local payment rows. The provider's checkout session
id, stored once in ``Payment.provider_payment_id``, is the idempotency key:
every event is a no-op once its payment already sits in the state the event
would produce.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from trainerplus.database import db
from trainerplus.models.club import Student
from trainerplus.models.payment import Payment, PaymentMethod, PaymentStatus, PAYMENT_TRANSITIONS
from trainerplus.models.subscription import SubscriptionStatus
from trainerplus.services.authorization import authorize_group, load_group, load_student_in_club
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.metrics import record
from trainerplus.services.payment_provider import StripeProvider
from trainerplus.services.structured_logging import get_logger
from trainerplus.services.unit_of_work import UnitOfWork, unit_of_work
from trainerplus.utils.time import utcnow

logger = get_logger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"
CHARGE_REFUNDED = "charge.refunded"

DEFAULT_VALIDITY_DAYS = 90
MANUAL_METHODS = (PaymentMethod.CASH, PaymentMethod.MANUAL)


class EventOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class CheckoutHandle:
    checkout_url: str
    session_id: str
    subscription_id: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "checkout_url": self.checkout_url,
            "session_id": self.session_id,
            "subscription_id": self.subscription_id,
        }


@dataclass
class ProviderEventResult:
    event_type: str
    outcome: EventOutcome

    def to_dict(self) -> Dict[str, str]:
        return {"event_type": self.event_type, "outcome": self.outcome.value}


@dataclass
class CheckoutTerms:
    total_sessions: int
    price: Decimal


@dataclass
class ReturnUrls:
    success_url: str
    cancel_url: str


def with_session_placeholder(success_url: str) -> str:
    sep = "&" if "?" in success_url else "?"
    return f"{success_url}{sep}session_id={{CHECKOUT_SESSION_ID}}"


class PaymentReconciler:

    def __init__(self,
                 provider: StripeProvider,
                 session=None,
                 validity_days: int = DEFAULT_VALIDITY_DAYS,
                 default_currency: str = "kzt"):
        self.provider = provider
        self.session = session if session is not None else db.session
        self.validity_days = validity_days
        self.default_currency = default_currency
        self._handlers: Dict[str, Callable[[Dict[str, Any]], EventOutcome]] = {
            CHECKOUT_COMPLETED: self._on_checkout_completed,
            CHECKOUT_EXPIRED: self._on_checkout_expired,
            CHARGE_REFUNDED: self._on_charge_refunded,
        }

    @classmethod
    def from_config(cls, config, session=None) -> "PaymentReconciler":
        return cls(
            StripeProvider.from_config(config),
            session=session,
            validity_days=int(config.get("SUBSCRIPTION_VALIDITY_DAYS", DEFAULT_VALIDITY_DAYS)),
            default_currency=config.get("DEFAULT_CURRENCY", "kzt"),
        )

    # -- checkout ----------------------------------------------------------

    def create_checkout(self,
                        group_id: str,
                        student_ref: Dict[str, Any],
                        terms: CheckoutTerms,
                        return_urls: ReturnUrls) -> CheckoutHandle:
        """
        Create the pending subscription (and the student, if new), then ask the
        provider for a hosted checkout.

        The local rows are committed before the provider call. If the provider
        fails they stay pending and orphaned; nobody was charged.
        """
        group, club = load_group(self.session, group_id)
        currency = club.currency or self.default_currency

        with unit_of_work(self.session) as uow:
            student = self._resolve_student(uow, club.id, student_ref)
            sub = uow.ledger.create(
                student_id=student.id,
                group_id=group.id,
                total_sessions=terms.total_sessions,
                price=terms.price,
                status=SubscriptionStatus.PENDING,
            )
        subscription_id, student_id, student_name = sub.id, student.id, student.name
        customer_email = student.parent_email

        checkout = self.provider.create_checkout(
            amount=terms.price,
            currency=currency,
            product_name=f"Subscription: {group.title} ({terms.total_sessions} sessions)",
            success_url=with_session_placeholder(return_urls.success_url),
            cancel_url=return_urls.cancel_url,
            metadata={
                "subscription_id": subscription_id,
                "student_id": student_id,
                "group_id": group.id,
                "club_id": club.id,
            },
            customer_email=customer_email,
        )

        try:
            with unit_of_work(self.session) as uow:
                uow.add(Payment(
                    subscription_id=subscription_id,
                    amount=terms.price,
                    currency=currency,
                    method=PaymentMethod.STRIPE.value,
                    status=PaymentStatus.PENDING.value,
                    provider_payment_id=checkout.id,
                    provider_intent_id=checkout.payment_intent,
                    provider_metadata={
                        "checkout_session_id": checkout.id,
                        "student_name": student_name,
                        "group_title": group.title,
                    },
                ))
        except SQLAlchemyError as e:
            # The redirect is already issued; the webhook path stays authoritative.
            logger.log_payment_event("payment_record_write", success=False,
                                     provider_payment_id=checkout.id,
                                     subscription_id=subscription_id, error=str(e))

        logger.log_payment_event("checkout_created", provider_payment_id=checkout.id,
                                 subscription_id=subscription_id, amount=str(terms.price),
                                 currency=currency)
        return CheckoutHandle(checkout.url, checkout.id, subscription_id)

    def _resolve_student(self, uow: UnitOfWork, club_id: str, student_ref: Dict[str, Any]) -> Student:
        student_id = student_ref.get("student_id")
        if student_id:
            return load_student_in_club(self.session, student_id, club_id)

        name = (student_ref.get("name") or "").strip()
        if not name:
            raise CoreError(ErrorKind.BAD_REQUEST, "either student or student_id is required")
        return uow.add(Student(
            club_id=club_id,
            name=name,
            parent_contact=student_ref.get("parent_contact") or None,
        ))

    # -- webhooks ----------------------------------------------------------

    def handle_provider_event(self, payload: bytes, signature_header: Optional[str]) -> ProviderEventResult:
        """
        Verify, dispatch and reconcile one webhook delivery.

        Authentication and parse failures raise. Once the event is trusted,
        reconciliation errors are logged and reported as ``failed`` so the
        provider does not retry a delivery that can never succeed.
        """
        event = self.provider.verify_event(payload, signature_header)
        event_type = str(event.get("type"))
        obj = event["data"]["object"]

        logger.log_payment_event("webhook_received", webhook_type=event_type, event_id=event.get("id"))

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug("Unhandled webhook event", webhook_type=event_type)
            record("record_provider_event", "other", EventOutcome.IGNORED.value)
            return ProviderEventResult(event_type, EventOutcome.IGNORED)

        try:
            outcome = handler(obj)
        except (CoreError, SQLAlchemyError) as e:
            logger.exception("Webhook reconciliation failed", webhook_type=event_type, error=str(e))
            outcome = EventOutcome.FAILED

        record("record_provider_event", event_type, outcome.value)
        return ProviderEventResult(event_type, outcome)

    def _on_checkout_completed(self, checkout: Dict[str, Any]) -> EventOutcome:
        session_id = checkout.get("id")
        with unit_of_work(self.session) as uow:
            payment = self._lock_by_provider_id(session_id)
            if payment is None:
                logger.log_payment_event("checkout_completed_unknown", success=False,
                                         provider_payment_id=session_id)
                return EventOutcome.NOT_FOUND
            if payment.status == PaymentStatus.SUCCEEDED.value:
                logger.log_payment_event("checkout_completed_duplicate", payment_id=payment.id)
                return EventOutcome.DUPLICATE

            self.mark_succeeded(payment, intent_id=checkout.get("payment_intent"))
            self._activate(uow, payment.subscription_id)

        logger.log_payment_event("checkout_completed", payment_id=payment.id,
                                 subscription_id=payment.subscription_id)
        return EventOutcome.APPLIED

    def _on_checkout_expired(self, checkout: Dict[str, Any]) -> EventOutcome:
        session_id = checkout.get("id")
        with unit_of_work(self.session) as uow:
            payment = self._lock_by_provider_id(session_id)
            if payment is None:
                return EventOutcome.NOT_FOUND
            if payment.status != PaymentStatus.PENDING.value:
                return EventOutcome.DUPLICATE

            self.mark_failed(payment)
            sub = uow.ledger.get(payment.subscription_id, lock=True)
            if sub.status == SubscriptionStatus.PENDING.value:
                uow.ledger.cancel(sub.id)

        logger.log_payment_event("checkout_expired", payment_id=payment.id,
                                 subscription_id=payment.subscription_id)
        return EventOutcome.APPLIED

    def _on_charge_refunded(self, charge: Dict[str, Any]) -> EventOutcome:
        """Mark the matching payment refunded. The subscription is left alone."""
        intent_id = charge.get("payment_intent")
        if not intent_id:
            return EventOutcome.IGNORED

        with unit_of_work(self.session):
            payment = self.session.execute(
                select(Payment)
                .where(Payment.provider_intent_id == intent_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalars().first()
            if payment is None:
                logger.log_payment_event("refund_unknown", success=False, payment_intent=intent_id)
                return EventOutcome.NOT_FOUND
            if payment.status != PaymentStatus.SUCCEEDED.value:
                return EventOutcome.DUPLICATE
            self.mark_refunded(payment)

        logger.log_payment_event("refunded", payment_id=payment.id, charge_id=charge.get("id"),
                                 amount_refunded=charge.get("amount_refunded"))
        return EventOutcome.APPLIED

    def _lock_by_provider_id(self, provider_payment_id: Optional[str]) -> Optional[Payment]:
        if not provider_payment_id:
            return None
        return self.session.execute(
            select(Payment)
            .where(Payment.provider_payment_id == provider_payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().first()

    def _activate(self, uow: UnitOfWork, subscription_id: str):
        now = utcnow()
        return uow.ledger.activate(subscription_id, starts_at=now,
                                   expires_at=now + timedelta(days=self.validity_days))

    # -- manual payments ---------------------------------------------------

    def create_manual(self, subscription_id: str, amount, method: str,
                      notes: Optional[str], actor_id: str) -> Payment:
        """Record an offline payment and activate a pending subscription."""
        try:
            method = PaymentMethod(method)
        except ValueError:
            method = None
        if method not in MANUAL_METHODS:
            raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "method must be one of cash, manual")
        try:
            amount = Decimal(str(amount))
        except InvalidOperation:
            raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "amount must be a number")
        if amount < 0:
            raise CoreError(ErrorKind.UNPROCESSABLE_ENTITY, "amount must not be negative")

        with unit_of_work(self.session) as uow:
            sub = uow.ledger.get(subscription_id, lock=True)
            _, club = authorize_group(self.session, sub.group_id, actor_id, "record payments")

            metadata = {"recorded_by": actor_id}
            if notes:
                metadata["notes"] = notes
            payment = uow.add(Payment(
                subscription_id=sub.id,
                amount=amount,
                currency=club.currency or self.default_currency,
                method=method.value,
                status=PaymentStatus.SUCCEEDED.value,
                provider_metadata=metadata,
                paid_at=utcnow(),
            ))
            if sub.status == SubscriptionStatus.PENDING.value:
                self._activate(uow, sub.id)

        logger.log_payment_event("manual_recorded", payment_id=payment.id,
                                 subscription_id=subscription_id, method=method.value)
        return payment

    # -- transitions -------------------------------------------------------

    def mark_succeeded(self, payment: Payment, intent_id: Optional[str] = None) -> Payment:
        self._transition(payment, PaymentStatus.SUCCEEDED)
        payment.paid_at = utcnow()
        if intent_id:
            payment.provider_intent_id = intent_id
        self.session.flush()
        return payment

    def mark_failed(self, payment: Payment) -> Payment:
        self._transition(payment, PaymentStatus.FAILED)
        self.session.flush()
        return payment

    def mark_refunded(self, payment: Payment) -> Payment:
        self._transition(payment, PaymentStatus.REFUNDED)
        self.session.flush()
        return payment

    @staticmethod
    def _transition(payment: Payment, target: PaymentStatus):
        if target not in PAYMENT_TRANSITIONS[PaymentStatus(payment.status)]:
            raise CoreError(
                ErrorKind.INVALID_TRANSITION,
                f"cannot move payment from {payment.status} to {target.value}",
                {"payment_id": payment.id},
            )
        payment.status = target.value

    # -- reads -------------------------------------------------------------

    def get(self, payment_id: str) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise not_found("payment")
        return payment

    def list_for_subscription(self, subscription_id: str) -> List[Payment]:
        return list(self.session.execute(
            select(Payment)
            .where(Payment.subscription_id == subscription_id)
            .order_by(Payment.created_at.desc())
        ).scalars())

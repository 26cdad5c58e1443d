"""
Scoped transactions for the core services.

``unit_of_work`` opens a transaction on the Flask-SQLAlchemy session and
yields a ``UnitOfWork`` exposing a ledger bound to it. Leaving the block
normally commits; any exception rolls everything back and propagates.
The raw transaction never leaves this module.
"""
from contextlib import contextmanager
from typing import Iterator, Optional

from trainerplus.database import db
from trainerplus.services.ledger import SubscriptionLedger


class UnitOfWork:

    def __init__(self, session):
        self.session = session
        self.ledger = SubscriptionLedger(session)

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        """Nested scope; a failure inside rolls back only this scope."""
        with self.session.begin_nested():
            yield

    def add(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj


@contextmanager
def unit_of_work(session=None) -> Iterator[UnitOfWork]:
    session = session if session is not None else db.session
    uow = UnitOfWork(session)
    try:
        yield uow
        session.commit()
    except Exception:
        session.rollback()
        raise


def current_ledger(session: Optional[object] = None) -> SubscriptionLedger:
    """Ledger bound to the request session, for read-only use."""
    return SubscriptionLedger(session if session is not None else db.session)

# -*- coding: utf-8 -*-
"""Moves active subscriptions whose validity window has ended to ``expired``."""
from datetime import datetime
from typing import Optional

from trainerplus.services.structured_logging import get_logger
from trainerplus.services.unit_of_work import unit_of_work

logger = get_logger(__name__)


def run(now: Optional[datetime] = None) -> int:
    with unit_of_work() as uow:
        count = uow.ledger.expire_overdue(now)
    logger.info("Subscription expiry job finished", expired=count)
    return count

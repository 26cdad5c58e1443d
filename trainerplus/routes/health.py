# -*- coding: utf-8 -*-
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from trainerplus import __version__
from trainerplus.database import db
from trainerplus.services.structured_logging import get_logger
from trainerplus.utils.time import isoformat, utcnow

health_bp = Blueprint('health', __name__)
logger = get_logger(__name__)


@health_bp.route('/healthz', methods=['GET', 'HEAD'])
def healthz():
    """Liveness only; the database is not touched."""
    return jsonify(status='healthy', version=__version__, checked_at=isoformat(utcnow()))


@health_bp.route('/readyz', methods=['GET', 'HEAD'])
def readyz():
    """Readiness: the database answers a trivial query."""
    try:
        db.session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Readiness check failed", error=str(e))
        return jsonify(status='unavailable', checked_at=isoformat(utcnow())), 503
    return jsonify(status='ready', version=__version__, checked_at=isoformat(utcnow())), 200

# -*- coding: utf-8 -*-
"""Helpers shared by the API blueprints."""
from typing import Any, Dict, Type, TypeVar

from flask import current_app, request
from pydantic import BaseModel

from trainerplus.services.attendance import AttendanceRecorder
from trainerplus.services.payments import PaymentReconciler

T = TypeVar("T", bound=BaseModel)


def _json() -> Dict[str, Any]:
    """Safely parse JSON body or return empty dict."""
    return (request.get_json(silent=True) or {}) if request.data else {}


def parse_body(schema: Type[T]) -> T:
    """Validate the request body; pydantic errors surface as 422."""
    return schema.model_validate(_json())


def attendance_recorder() -> AttendanceRecorder:
    return AttendanceRecorder(
        restore_credit_on_delete=current_app.config.get("ATTENDANCE_RESTORE_CREDIT_ON_DELETE", False)
    )


def payment_reconciler() -> PaymentReconciler:
    return PaymentReconciler.from_config(current_app.config)

# -*- coding: utf-8 -*-
"""Registration, login and token refresh."""
from flask import Blueprint, jsonify
from flask_jwt_extended import (
    create_access_token,
    create_refresh_token,
    get_jwt_identity,
    jwt_required,
)
from sqlalchemy import select

from trainerplus.database import db
from trainerplus.middleware.auth import actor_required, current_actor_id
from trainerplus.models.user import User
from trainerplus.routes.common import parse_body
from trainerplus.schemas.auth import LoginRequest, RegisterRequest
from trainerplus.services.errors import CoreError, ErrorKind, not_found
from trainerplus.services.structured_logging import get_logger
from trainerplus.utils.time import utcnow

auth_bp = Blueprint("auth", __name__)
logger = get_logger(__name__)


def _tokens_for(user: User):
    claims = {"role": user.role, "email": user.email}
    return {
        "access_token": create_access_token(identity=user.id, additional_claims=claims),
        "refresh_token": create_refresh_token(identity=user.id),
        "user": user.to_dict(),
    }


@auth_bp.route("/auth/register", methods=["POST"])
def register():
    data = parse_body(RegisterRequest)
    existing = db.session.execute(select(User).where(User.email == data.email)).scalars().first()
    if existing is not None:
        raise CoreError(ErrorKind.CONFLICT, "email already registered")

    user = User(email=data.email, name=data.name, role=data.role)
    user.set_password(data.password)
    db.session.add(user)
    db.session.commit()

    logger.info("User registered", user_id=user.id, role=user.role)
    return jsonify(_tokens_for(user)), 201


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    data = parse_body(LoginRequest)
    user = db.session.execute(select(User).where(User.email == data.email)).scalars().first()
    if user is None or not user.check_password(data.password):
        logger.log_security_event("login_failed", severity="warning")
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    user.last_login = utcnow()
    db.session.commit()
    return jsonify(_tokens_for(user)), 200


@auth_bp.route("/auth/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    user = db.session.get(User, get_jwt_identity())
    if user is None:
        return jsonify({"error": "unauthorized", "message": "user no longer exists"}), 401
    return jsonify({
        "access_token": create_access_token(
            identity=user.id, additional_claims={"role": user.role, "email": user.email}
        ),
    }), 200


@auth_bp.route("/auth/me", methods=["GET"])
@actor_required
def me():
    user = db.session.get(User, current_actor_id())
    if user is None:
        raise not_found("user")
    return jsonify(user.to_dict()), 200

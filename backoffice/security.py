"""Bearer-token authentication and role checks for the JSON API."""
from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import Flask, g, jsonify
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt_identity,
    verify_jwt_in_request,
)

from backoffice.database import get_db
from backoffice.models import Role, User
from backoffice.observability import increment_counter

jwt = JWTManager()


def init_security(app: Flask) -> None:
    jwt.init_app(app)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return jsonify({"error": "Authentication required"}), 401

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return jsonify({"error": "Invalid token"}), 401

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401


def issue_token(user: User) -> str:
    return create_access_token(
        identity=user.userID,
        additional_claims={"role": Role.normalize(user.role).value},
    )


def current_user() -> Optional[User]:
    return getattr(g, "current_user", None)


def role_required(*roles: Role | str):
    """
    Require a valid bearer token and, when roles are given, one of those roles.
    The authenticated user is available as ``g.current_user``.
    """
    allowed = {Role.normalize(role) for role in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            user = get_db().query(User).filter_by(userID=get_jwt_identity()).first()
            if user is None:
                return jsonify({"error": "User no longer exists"}), 401
            g.current_user = user
            if allowed and Role.normalize(user.role) not in allowed:
                increment_counter("authorization_denied_total", labels={"role": Role.normalize(user.role).value})
                return jsonify({"error": "Forbidden"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


login_required = role_required()

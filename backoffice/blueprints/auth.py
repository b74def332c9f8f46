from __future__ import annotations

from flask import Blueprint, jsonify, request

from backoffice.blueprints.serializers import serialize_user
from backoffice.database import get_db
from backoffice.security import current_user, issue_token, login_required
from backoffice.services.user_service import UserService

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _get_user_service() -> UserService:
    return UserService(get_db())


@auth_bp.route("/register", methods=["POST"])
def register():
    payload = request.get_json(silent=True) or {}
    success, message, user = _get_user_service().register(
        payload.get("name"),
        payload.get("email"),
        payload.get("password"),
    )
    if not success:
        return jsonify({"error": message}), 400
    return jsonify({"message": message, "user": serialize_user(user)}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    user = _get_user_service().authenticate(payload.get("email"), payload.get("password"))
    if not user:
        return jsonify({"error": "Invalid email or password"}), 401
    return jsonify({"token": issue_token(user), "user": serialize_user(user)})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(serialize_user(current_user()))


@auth_bp.route("/me", methods=["PUT"])
@login_required
def update_me():
    payload = request.get_json(silent=True) or {}
    success, message, user = _get_user_service().update_profile(current_user(), payload)
    if not success:
        return jsonify({"error": message}), 400
    return jsonify(serialize_user(user))

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backoffice.blueprints.serializers import serialize_user
from backoffice.database import get_db
from backoffice.models import Role
from backoffice.security import current_user, role_required
from backoffice.services.user_service import UserService

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _get_user_service() -> UserService:
    return UserService(get_db())


@users_bp.route("", methods=["GET"])
@role_required(Role.ADMIN)
def list_users():
    try:
        users = _get_user_service().list_users(role=request.args.get("role"))
    except ValueError:
        return jsonify({"error": "Invalid role"}), 400
    return jsonify([serialize_user(user) for user in users])


@users_bp.route("/<user_id>", methods=["GET"])
@role_required(Role.ADMIN)
def get_user(user_id: str):
    user = _get_user_service().get_user(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify(serialize_user(user))


@users_bp.route("/<user_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def update_user(user_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, user = _get_user_service().update_user(user_id, payload)
    if not success:
        return jsonify({"error": message}), 404 if message == "User not found" else 400
    return jsonify({"message": message, "user": serialize_user(user)})


@users_bp.route("/<user_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def delete_user(user_id: str):
    success, message = _get_user_service().delete_user(user_id, acting_user=current_user())
    if not success:
        return jsonify({"error": message}), 404 if message == "User not found" else 400
    return jsonify({"message": message})


@users_bp.route("/assign-salesman", methods=["POST"])
@role_required(Role.ADMIN)
def assign_salesman():
    payload = request.get_json(silent=True) or {}
    success, message, salesman = _get_user_service().assign_salesman(
        payload.get("salesmanId"),
        payload.get("staffId"),
    )
    if not success:
        return jsonify({"error": message}), 404
    return jsonify({"message": message, "salesman": serialize_user(salesman)})


@users_bp.route("/staff/salesmen", methods=["GET"])
@role_required(Role.STAFF)
def staff_salesmen():
    salesmen = _get_user_service().salesmen_for_staff(current_user())
    return jsonify([serialize_user(salesman) for salesman in salesmen])

from __future__ import annotations

from flask import Blueprint, jsonify, request

from backoffice.blueprints.serializers import serialize_order
from backoffice.database import get_db
from backoffice.models import Role
from backoffice.security import current_user, role_required
from backoffice.services.order_service import OrderService

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _get_order_service() -> OrderService:
    return OrderService(get_db())


@orders_bp.route("", methods=["POST"])
@role_required(Role.STAFF, Role.SALESMAN)
def create_order():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    success, message, order = _get_order_service().create_order(current_user(), payload)
    if not success:
        return jsonify({"error": message}), 400
    return jsonify(serialize_order(order)), 201


@orders_bp.route("", methods=["GET"])
@role_required(Role.ADMIN, Role.STAFF, Role.SALESMAN)
def list_orders():
    try:
        result = _get_order_service().list_orders(current_user(), request.args.to_dict())
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({
        "orders": [serialize_order(order) for order in result["orders"]],
        "totalCount": result["total_count"],
        "currentPage": result["current_page"],
        "totalPages": result["total_pages"],
        "hasMore": result["has_more"],
    })


@orders_bp.route("/commissions/summary", methods=["GET"])
@role_required(Role.ADMIN, Role.STAFF)
def commission_summary():
    try:
        summary = _get_order_service().commission_summary(current_user(), request.args.to_dict())
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(summary)


@orders_bp.route("/<order_id>", methods=["GET"])
@role_required(Role.ADMIN, Role.STAFF, Role.SALESMAN)
def get_order(order_id: str):
    order, error = _get_order_service().get_order(current_user(), order_id)
    if error == "not_found":
        return jsonify({"error": "Order not found"}), 404
    if error == "forbidden":
        return jsonify({"error": "Access denied"}), 403
    return jsonify(serialize_order(order))


@orders_bp.route("/<order_id>/status", methods=["PUT"])
@role_required(Role.ADMIN, Role.STAFF)
def update_order_status(order_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, order = _get_order_service().update_order_status(
        current_user(),
        order_id,
        payload.get("status"),
    )
    if not success:
        return jsonify({"error": message}), 400
    return jsonify(serialize_order(order))

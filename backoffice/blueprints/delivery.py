from __future__ import annotations

from flask import Blueprint, jsonify, request

from backoffice.blueprints.serializers import serialize_city, serialize_delivery_service
from backoffice.database import get_db
from backoffice.models import Role
from backoffice.security import current_user, login_required, role_required
from backoffice.services.delivery_service import DeliveryCatalogService
from backoffice.services.parsing import parse_bool

delivery_bp = Blueprint("delivery", __name__, url_prefix="/api")


def _get_delivery_service() -> DeliveryCatalogService:
    return DeliveryCatalogService(get_db())


def _include_inactive() -> bool:
    # inactive entries are only listed for back-office roles
    requested = parse_bool(request.args.get("includeInactive"))
    return requested and current_user().has_role(Role.ADMIN, Role.STAFF)


def _json_response(success: bool, message: str, body, created: bool = False):
    if not success:
        return jsonify({"error": message}), 404 if message.endswith("not found") else 400
    return jsonify({"message": message, **body}), 201 if created else 200


# ---------------------------
# Delivery services
# ---------------------------


@delivery_bp.route("/delivery-services", methods=["GET"])
@login_required
def list_delivery_services():
    services = _get_delivery_service().list_services(include_inactive=_include_inactive())
    return jsonify([serialize_delivery_service(s, include_cities=True) for s in services])


@delivery_bp.route("/delivery-services/<service_id>", methods=["GET"])
@login_required
def get_delivery_service(service_id: str):
    service = _get_delivery_service().get_service(service_id)
    if not service:
        return jsonify({"error": "Delivery service not found"}), 404
    return jsonify(serialize_delivery_service(service, include_cities=True))


@delivery_bp.route("/delivery-services", methods=["POST"])
@role_required(Role.ADMIN)
def create_delivery_service():
    payload = request.get_json(silent=True) or {}
    success, message, service = _get_delivery_service().create_service(payload)
    body = {"deliveryService": serialize_delivery_service(service, include_cities=True)} if service else {}
    return _json_response(success, message, body, created=True)


@delivery_bp.route("/delivery-services/<service_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def update_delivery_service(service_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, service = _get_delivery_service().update_service(service_id, payload)
    body = {"deliveryService": serialize_delivery_service(service, include_cities=True)} if service else {}
    return _json_response(success, message, body)


@delivery_bp.route("/delivery-services/<service_id>/cities", methods=["PUT"])
@role_required(Role.ADMIN)
def assign_delivery_cities(service_id: str):
    payload = request.get_json(silent=True) or {}
    city_ids = payload.get("cityIds")
    if not isinstance(city_ids, list):
        return jsonify({"error": "cityIds must be a list"}), 400
    success, message, service = _get_delivery_service().assign_cities(service_id, [str(c) for c in city_ids])
    body = {"deliveryService": serialize_delivery_service(service, include_cities=True)} if service else {}
    return _json_response(success, message, body)


# ---------------------------
# Cities
# ---------------------------


@delivery_bp.route("/cities", methods=["GET"])
@login_required
def list_cities():
    cities = _get_delivery_service().list_cities(
        include_inactive=_include_inactive(),
        delivery_service_id=request.args.get("deliveryServiceId"),
    )
    return jsonify([serialize_city(city) for city in cities])


@delivery_bp.route("/cities", methods=["POST"])
@role_required(Role.ADMIN)
def create_city():
    payload = request.get_json(silent=True) or {}
    success, message, city = _get_delivery_service().create_city(payload)
    return _json_response(success, message, {"city": serialize_city(city)} if city else {}, created=True)


@delivery_bp.route("/cities/<city_id>", methods=["PUT"])
@role_required(Role.ADMIN)
def update_city(city_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, city = _get_delivery_service().update_city(city_id, payload)
    return _json_response(success, message, {"city": serialize_city(city)} if city else {})

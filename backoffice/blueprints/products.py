from __future__ import annotations

from flask import Blueprint, jsonify, request

from backoffice.blueprints.serializers import enum_value, serialize_product
from backoffice.database import get_db
from backoffice.models import Role
from backoffice.security import login_required, role_required
from backoffice.services.product_service import ProductService

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _get_product_service() -> ProductService:
    return ProductService(get_db())


@products_bp.route("", methods=["GET"])
@login_required
def list_products():
    filters = request.args.to_dict()
    tags = request.args.getlist("tags")
    if tags:
        filters["tags"] = tags
    try:
        result = _get_product_service().list_products(filters)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify({
        "products": [serialize_product(p) for p in result["products"]],
        "pagination": {
            "total": result["total"],
            "page": result["page"],
            "totalPages": result["total_pages"],
        },
    })


@products_bp.route("/categories", methods=["GET"])
@login_required
def list_categories():
    return jsonify(_get_product_service().categories())


@products_bp.route("/tags", methods=["GET"])
@login_required
def list_tags():
    return jsonify(_get_product_service().tags())


@products_bp.route("/<product_id>", methods=["GET"])
@login_required
def get_product(product_id: str):
    product = _get_product_service().get_product(product_id)
    if not product:
        return jsonify({"error": "Product not found"}), 404
    return jsonify(serialize_product(product))


@products_bp.route("", methods=["POST"])
@role_required(Role.ADMIN, Role.STAFF)
def create_product():
    payload = request.get_json(silent=True) or {}
    success, message, product = _get_product_service().create_product(payload)
    if not success:
        return jsonify({"error": message}), 400
    return jsonify({"message": message, "product": serialize_product(product)}), 201


@products_bp.route("/<product_id>", methods=["PUT"])
@role_required(Role.ADMIN, Role.STAFF)
def update_product(product_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, product = _get_product_service().update_product(product_id, payload)
    if not success:
        return jsonify({"error": message}), 404 if product is None and message == "Product not found" else 400
    return jsonify({"message": message, "product": serialize_product(product)})


@products_bp.route("/<product_id>", methods=["DELETE"])
@role_required(Role.ADMIN)
def delete_product(product_id: str):
    success, message = _get_product_service().delete_product(product_id)
    if not success:
        return jsonify({"error": message}), 404 if message == "Product not found" else 400
    return jsonify({"message": message})


@products_bp.route("/<product_id>/stock", methods=["PUT"])
@role_required(Role.ADMIN, Role.STAFF)
def update_stock(product_id: str):
    payload = request.get_json(silent=True) or {}
    success, message, product = _get_product_service().update_stock(product_id, payload.get("quantity"))
    if product is None:
        return jsonify({"error": message}), 404
    if not success:
        return jsonify({"error": message, "currentStock": product.stock}), 400
    return jsonify({
        "message": message,
        "product": {
            "id": product.productID,
            "name": product.name,
            "stock": product.stock,
            "status": enum_value(product.status),
        },
    })

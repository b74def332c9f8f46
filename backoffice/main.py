# backoffice/main.py
import logging
import time

from flask import Flask, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backoffice.config import Config
from backoffice.database import close_db, init_database
from backoffice.blueprints import auth_bp, delivery_bp, orders_bp, products_bp, users_bp
from backoffice.cli import register_cli
from backoffice.models import Role
from backoffice.observability import (
    check_database_health,
    configure_logging,
    ensure_request_id,
    get_metrics_snapshot,
    increment_counter,
    observe_latency,
)
from backoffice.security import init_security, role_required

app = Flask(__name__)
Config.configure_app(app)
configure_logging(app)
CORS(app, origins=list(Config.CORS_ORIGINS))
init_security(app)

for blueprint in (auth_bp, users_bp, products_bp, orders_bp, delivery_bp):
    app.register_blueprint(blueprint)
register_cli(app)

logger = logging.getLogger(__name__)

if Config.AUTO_CREATE_TABLES:
    init_database()
    logger.info("Database tables initialized")


@app.before_request
def before_request_logging():
    g.request_started_at = time.perf_counter()
    g.request_id = ensure_request_id()
    increment_counter(
        "http_requests_total",
        labels={
            "method": request.method,
            "endpoint": request.endpoint or request.path,
        },
    )


@app.after_request
def after_request_logging(response):
    started = getattr(g, "request_started_at", None)
    labels = {
        "method": request.method,
        "endpoint": request.endpoint or request.path,
        "status": str(response.status_code),
    }
    if started is not None:
        observe_latency("http_request_latency_ms", (time.perf_counter() - started) * 1000, labels=labels)
    if response.status_code >= 500:
        increment_counter("http_errors_total", labels=labels)
        logger.error("Request finished with error status %s", response.status_code)
    else:
        logger.info("Request finished", extra={"status_code": response.status_code})
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers[Config.REQUEST_ID_HEADER] = request_id
    return response


@app.teardown_appcontext
def teardown_db(exception):
    close_db(exception)


@app.route("/", methods=["GET"])
def index():
    return jsonify({"message": f"Welcome to the {Config.APP_NAME}"})


@app.route("/health", methods=["GET"])
def health():
    db_status = check_database_health()
    overall = "UP" if db_status.get("status") == "UP" else "DEGRADED"
    status_code = 200 if overall == "UP" else 503
    return jsonify({
        "status": overall,
        "components": {
            "database": db_status
        }
    }), status_code


@app.route("/api/admin/metrics", methods=["GET"])
@role_required(Role.ADMIN)
def admin_metrics():
    return jsonify(get_metrics_snapshot())


# ---------------------------------------------
# Error handlers
# ---------------------------------------------
@app.errorhandler(404)
def not_found(error):
    return jsonify({"error": "Route not found"}), 404


@app.errorhandler(405)
def method_not_allowed(error):
    return jsonify({"error": "Method not allowed"}), 405


@app.errorhandler(Exception)
def unhandled_error(error):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.description}), error.code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    body = {"error": "Something went wrong!"}
    if Config.DEBUG:
        body["detail"] = str(error)
    return jsonify(body), 500

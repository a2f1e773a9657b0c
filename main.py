import logging
from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app import app, db
from errors import ValidationError, NotFoundError, AccessDenied
from services_orders import StoreError
from routes_auth import auth_bp
from routes_admin import admin_bp
from routes_customers import customers_bp
from routes_products import products_bp
from routes_orders import orders_bp
from routes_collections import collections_bp
from routes_routes import bp as routes_bp
from routes_telecalling import telecalling_bp
from routes_reports import reports_bp
from routes_tracking import tracking_bp

logger = logging.getLogger(__name__)

app.config.update({
    'SESSION_COOKIE_HTTPONLY': True,
    'PERMANENT_SESSION_LIFETIME': 3600,
    'JSON_SORT_KEYS': False,
})

# Register the authentication blueprint
app.register_blueprint(auth_bp)

# Register user management and bulk import
app.register_blueprint(admin_bp)

# Register the master data blueprints
app.register_blueprint(customers_bp)
app.register_blueprint(products_bp)

# Register order taking and collections
app.register_blueprint(orders_bp)
app.register_blueprint(collections_bp)

# Register the route management blueprint (routes, route customers, beat plans)
app.register_blueprint(routes_bp)

# Register telecalling, reports and staff tracking
app.register_blueprint(telecalling_bp)
app.register_blueprint(reports_bp)
app.register_blueprint(tracking_bp)


# =============================================================================
# ERROR HANDLERS - every error leaves the API as {"error": message}
# =============================================================================

@app.errorhandler(ValidationError)
def handle_validation_error(e):
    db.session.rollback()
    return jsonify({"error": str(e)}), 400


@app.errorhandler(NotFoundError)
def handle_not_found(e):
    db.session.rollback()
    return jsonify({"error": str(e) or "not found"}), 404


@app.errorhandler(AccessDenied)
def handle_access_denied(e):
    db.session.rollback()
    return jsonify({"error": str(e) or "Access denied"}), 403


@app.errorhandler(StoreError)
def handle_store_error(e):
    db.session.rollback()
    return jsonify({"error": str(e)}), 500


@app.errorhandler(SQLAlchemyError)
def handle_database_error(e):
    db.session.rollback()
    logger.error(f"Unhandled database error: {str(e)}", exc_info=True)
    return jsonify({"error": "Database error, nothing was saved"}), 500


@app.errorhandler(HTTPException)
def handle_http_error(e):
    # 400/401/403/404/405/413 raised by Flask itself (abort, get_or_404, body too large)
    messages = {
        404: "not found",
        413: "File too large",
    }
    return jsonify({"error": messages.get(e.code, e.description)}), e.code


@app.errorhandler(500)
def handle_internal_error(e):
    db.session.rollback()
    logger.error(f"Internal server error: {str(e)}", exc_info=True)
    return jsonify({"error": "Internal server error"}), 500


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=False)

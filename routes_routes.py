"""
Flask blueprint for sales routes, their customer visit order and weekly beat plans
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from access_control import manager_required
from utils import parse_date_field, truthy
import services

logger = logging.getLogger(__name__)

bp = Blueprint("routes", __name__, url_prefix='/api')


# =============================================================================
# ROUTES
# =============================================================================

@bp.route("/routes", methods=["GET"])
@manager_required
def list_routes():
    return jsonify(services.list_routes_with_counts())


@bp.route("/routes", methods=["POST"])
@manager_required
def create_route():
    data = request.get_json(silent=True) or {}
    route = services.upsert_route(
        data.get("route_code"),
        data.get("route_name"),
        route_description=data.get("route_description"),
        is_active=data.get("is_active", True),
    )
    return jsonify(route.to_dict()), 201


@bp.route("/routes/<int:route_id>", methods=["PUT"])
@manager_required
def update_route(route_id):
    """Update name, description and active flag. The route code cannot change."""
    data = request.get_json(silent=True) or {}
    route = services.upsert_route(
        None,
        data.get("route_name"),
        route_description=data.get("route_description"),
        is_active=data.get("is_active", True),
        route_id=route_id,
    )
    return jsonify(route.to_dict())


@bp.route("/routes/<int:route_id>", methods=["DELETE"])
@manager_required
def delete_route(route_id):
    services.delete_route(route_id)
    logger.info(f"Route {route_id} deleted by user {current_user.id}")
    return jsonify({"success": True})


# =============================================================================
# ROUTE CUSTOMERS
# =============================================================================

@bp.route("/routes/<int:route_id>/customers", methods=["GET"])
@manager_required
def route_customers(route_id):
    mappings = services.list_route_customers(route_id)
    return jsonify([m.to_dict() for m in mappings])


@bp.route("/routes/<int:route_id>/customers", methods=["POST"])
@manager_required
def add_route_customer(route_id):
    """Append a customer to the end of the route; any requested position is ignored"""
    data = request.get_json(silent=True) or {}
    mapping = services.add_customer_to_route(route_id, data.get("customer_id"), created_by=current_user.id)
    return jsonify(mapping.to_dict()), 201


@bp.route("/routes/<int:route_id>/available-customers", methods=["GET"])
@manager_required
def route_available_customers(route_id):
    customers = services.available_customers(route_id)
    return jsonify([c.to_dict() for c in customers])


@bp.route("/route-customers/<int:mapping_id>", methods=["PATCH"])
@manager_required
def update_route_customer(mapping_id):
    data = request.get_json(silent=True) or {}
    mapping = services.update_visit_sequence(mapping_id, data.get("visit_sequence"))
    return jsonify(mapping.to_dict())


@bp.route("/route-customers/<int:mapping_id>", methods=["DELETE"])
@manager_required
def delete_route_customer(mapping_id):
    services.remove_customer_from_route(mapping_id)
    return jsonify({"success": True})


# =============================================================================
# BEAT PLANS
# =============================================================================

@bp.route("/beat-plans", methods=["GET"])
@manager_required
def list_beat_plans():
    plans = services.list_beat_plans(
        user_id=request.args.get("user_id"),
        include_inactive=truthy(request.args.get("include_inactive")),
    )
    return jsonify([p.to_dict() for p in plans])


@bp.route("/beat-plans", methods=["POST"])
@manager_required
def create_beat_plan():
    data = request.get_json(silent=True) or {}
    plan = services.save_beat_plan(
        data.get("user_id"),
        data.get("route_id"),
        data.get("days"),
        assigned_by=current_user.id,
        is_active=data.get("is_active", True),
    )
    return jsonify(plan.to_dict()), 201


@bp.route("/beat-plans/<int:plan_id>", methods=["PUT"])
@manager_required
def update_beat_plan(plan_id):
    data = request.get_json(silent=True) or {}
    plan = services.save_beat_plan(
        data.get("user_id"),
        data.get("route_id"),
        data.get("days"),
        assigned_by=current_user.id,
        plan_id=plan_id,
        is_active=data.get("is_active", True),
    )
    return jsonify(plan.to_dict())


@bp.route("/beat-plans/<int:plan_id>", methods=["DELETE"])
@manager_required
def delete_beat_plan(plan_id):
    services.delete_beat_plan(plan_id)
    return jsonify({"success": True})


@bp.route("/beat-plans/today", methods=["GET"])
@login_required
def todays_routes():
    """Routes scheduled for the current user on ?date= (default: local today)"""
    day = parse_date_field(request.args.get("date"), "date")
    return jsonify(services.routes_for_day(current_user.id, day))

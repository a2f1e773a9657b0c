"""
Role checks and per-user visibility rules.

Managers (admin, sales_manager) see everything. Field staff see the customers
assigned to them and the orders, collections and telecalling records they own.
"""
from functools import wraps
from flask import jsonify
from flask_login import login_required, current_user
from sqlalchemy import or_
from order_status_constants import MANAGER_ROLES, ROLE_ADMIN


def manager_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if current_user.role not in MANAGER_ROLES:
            return jsonify({"error": "Access denied"}), 403
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    @wraps(f)
    @login_required
    def decorated_function(*args, **kwargs):
        if current_user.role != ROLE_ADMIN:
            return jsonify({"error": "Access denied"}), 403
        return f(*args, **kwargs)
    return decorated_function


def is_manager(user):
    return getattr(user, 'role', None) in MANAGER_ROLES


def visible_customers(user):
    """Customer query limited to what `user` may see"""
    from models import Customer, CustomerUserAssignment
    query = Customer.query
    if not is_manager(user):
        query = query.join(
            CustomerUserAssignment, CustomerUserAssignment.customer_id == Customer.id
        ).filter(CustomerUserAssignment.user_id == user.id)
    return query


def can_see_customer(user, customer):
    if is_manager(user):
        return True
    return any(u.id == user.id for u in customer.assigned_users)


def visible_orders(user):
    from models import SaleOrder
    query = SaleOrder.query
    if not is_manager(user):
        query = query.filter(SaleOrder.created_by == user.id)
    return query


def visible_collections(user):
    from models import Collection
    query = Collection.query
    if not is_manager(user):
        query = query.filter(Collection.collected_by == user.id)
    return query


def visible_leads(user):
    from models import Lead
    query = Lead.query
    if not is_manager(user):
        query = query.filter(Lead.assigned_to == user.id)
    return query


def visible_call_logs(user):
    from models import CallLog
    query = CallLog.query
    if not is_manager(user):
        query = query.filter(CallLog.recorded_by == user.id)
    return query


def visible_follow_ups(user):
    from models import FollowUp
    query = FollowUp.query
    if not is_manager(user):
        query = query.filter(or_(FollowUp.assigned_to == user.id, FollowUp.created_by == user.id))
    return query

"""
Route management business logic and services:
routes, the ordered customer list of each route, and weekly beat plans
"""
import logging
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from models import Route, RouteCustomer, BeatPlan, Customer, User
from order_status_constants import WEEKDAYS, ROLE_FIELD_STAFF
from errors import ValidationError, NotFoundError
from timezone_utils import get_local_today
from utils import clean_str, safe_int, safe_float, truthy
from app import db

logger = logging.getLogger(__name__)

DUPLICATE_BEAT_PLAN_MSG = "This route is already assigned to this user. Please edit the existing assignment."
DUPLICATE_ROUTE_CUSTOMER_MSG = "Customer is already mapped to this route"


def get_or_raise(model, pk, label):
    """Load a row by primary key or raise NotFoundError"""
    key = safe_int(pk)
    obj = db.session.get(model, key) if key is not None else None
    if obj is None:
        raise NotFoundError(f"{label} {pk} not found")
    return obj


# =============================================================================
# ROUTES
# =============================================================================

def upsert_route(route_code, route_name, route_description=None, is_active=True, route_id=None):
    """
    Create or update a route.

    Args:
        route_code: Unique code, fixed once the route exists
        route_name: Display name
        route_description: Optional free text
        is_active: Inactive routes are skipped by the day plan
        route_id: If provided, updates existing route instead of creating new

    Returns the Route object.
    """
    route_name = clean_str(route_name)
    if not route_name:
        raise ValidationError("Route name is required")

    if route_id:
        route = get_or_raise(Route, route_id, "Route")
        route.route_name = route_name
        route.route_description = clean_str(route_description)
        if truthy(is_active) != route.is_active:
            if truthy(is_active):
                route.enable()
            else:
                route.disable()
        db.session.commit()
        return route

    route_code = clean_str(route_code)
    if not route_code:
        raise ValidationError("Route code is required")
    if Route.query.filter_by(route_code=route_code).first():
        raise ValidationError(f"Route code '{route_code}' already exists")

    route = Route(
        route_code=route_code,
        route_name=route_name,
        route_description=clean_str(route_description),
        is_active=truthy(is_active),
    )
    db.session.add(route)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Route code '{route_code}' already exists")
    logger.info(f"Route {route.route_code} created")
    return route


def delete_route(route_id):
    """Delete a route together with its customer mappings and beat plans."""
    route = get_or_raise(Route, route_id, "Route")
    db.session.delete(route)
    db.session.commit()
    logger.info(f"Route {route.route_code} deleted")


def list_routes_with_counts():
    """All routes with the number of customers mapped to each"""
    counts = (
        db.session.query(RouteCustomer.route_id, func.count(RouteCustomer.id))
        .group_by(RouteCustomer.route_id)
        .all()
    )
    count_map = dict(counts)
    routes = Route.query.order_by(Route.route_name.asc()).all()
    result = []
    for route in routes:
        data = route.to_dict()
        data['customer_count'] = count_map.get(route.id, 0)
        result.append(data)
    return result


# =============================================================================
# ROUTE CUSTOMERS
# =============================================================================

def get_next_visit_sequence(route_id):
    """
    Get the next visit sequence for a route: highest existing sequence + 1,
    or 1 for an empty route.
    """
    max_seq = db.session.query(func.max(RouteCustomer.visit_sequence))\
        .filter(RouteCustomer.route_id == route_id)\
        .scalar()
    return (max_seq or 0) + 1


def add_customer_to_route(route_id, customer_id, created_by=None):
    """
    Append a customer to the end of a route's visit order.
    The sequence is always computed here; callers can't choose a position.
    Returns the RouteCustomer object.
    """
    route = get_or_raise(Route, route_id, "Route")
    customer = get_or_raise(Customer, customer_id, "Customer")

    if RouteCustomer.query.filter_by(route_id=route.id, customer_id=customer.id).first():
        raise ValidationError(DUPLICATE_ROUTE_CUSTOMER_MSG)

    mapping = RouteCustomer(
        route_id=route.id,
        customer_id=customer.id,
        visit_sequence=get_next_visit_sequence(route.id),
        created_by=created_by,
    )
    db.session.add(mapping)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(DUPLICATE_ROUTE_CUSTOMER_MSG)
    return mapping


def update_visit_sequence(mapping_id, new_sequence):
    """
    Overwrite one mapping's visit sequence. Other mappings keep their numbers,
    so duplicates and gaps are possible afterwards.
    """
    mapping = get_or_raise(RouteCustomer, mapping_id, "Route customer")
    value = safe_float(new_sequence)
    if value is None or not value.is_integer() or value < 1:
        raise ValidationError("Visit sequence must be a whole number of at least 1")

    mapping.visit_sequence = int(value)
    db.session.commit()
    return mapping


def remove_customer_from_route(mapping_id):
    mapping = get_or_raise(RouteCustomer, mapping_id, "Route customer")
    db.session.delete(mapping)
    db.session.commit()


def list_route_customers(route_id):
    """Mappings of a route in visit order"""
    route = get_or_raise(Route, route_id, "Route")
    return RouteCustomer.query.filter_by(route_id=route.id)\
        .order_by(RouteCustomer.visit_sequence.asc(), RouteCustomer.id.asc())\
        .all()


def available_customers(route_id):
    """Active customers not yet mapped to the route"""
    route = get_or_raise(Route, route_id, "Route")
    mapped = select(RouteCustomer.customer_id).where(RouteCustomer.route_id == route.id)
    return Customer.query.filter(
        Customer.is_active.is_(True),
        Customer.id.not_in(mapped),
    ).order_by(Customer.customer_name.asc()).all()


# =============================================================================
# BEAT PLANS
# =============================================================================

def normalize_days(days):
    """
    Accepts {'monday': True, ...}, {'day_monday': True, ...} or ['monday', 'friday'].
    Returns a dict with all seven weekdays.
    """
    flags = {day: False for day in WEEKDAYS}
    if not days:
        return flags

    if isinstance(days, dict):
        items = days.items()
    elif isinstance(days, (list, tuple, set)):
        items = ((name, True) for name in days)
    else:
        raise ValidationError("Days must be a list of weekday names or a weekday map")

    for name, value in items:
        key = str(name).strip().lower()
        if key.startswith('day_'):
            key = key[len('day_'):]
        if key not in flags:
            raise ValidationError(f"Unknown day '{name}'")
        flags[key] = truthy(value)
    return flags


def save_beat_plan(user_id, route_id, days, assigned_by=None, plan_id=None, is_active=True):
    """
    Create or update a beat plan.

    Validation happens before anything is added to the session: a route is
    required, at least one day must be selected, the user must be active
    field staff, and the user may not already have this route.
    The unique (user, route) constraint backs the duplicate check.

    Returns the BeatPlan object.
    """
    if route_id in (None, ''):
        raise ValidationError("Please select a route")

    flags = normalize_days(days)
    if not any(flags.values()):
        raise ValidationError("Please select at least one day")

    user = get_or_raise(User, user_id, "User")
    if not user.is_active or user.role != ROLE_FIELD_STAFF:
        raise ValidationError("Beat plans can only be assigned to active field staff")
    route = get_or_raise(Route, route_id, "Route")

    plan = get_or_raise(BeatPlan, plan_id, "Beat plan") if plan_id else None

    duplicate = BeatPlan.query.filter_by(user_id=user.id, route_id=route.id)
    if plan is not None:
        duplicate = duplicate.filter(BeatPlan.id != plan.id)
    if duplicate.first():
        raise ValidationError(DUPLICATE_BEAT_PLAN_MSG)

    if plan is None:
        plan = BeatPlan(assigned_by=assigned_by)
        db.session.add(plan)

    plan.user_id = user.id
    plan.route_id = route.id
    plan.is_active = truthy(is_active)
    for day, flag in flags.items():
        setattr(plan, f'day_{day}', flag)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(DUPLICATE_BEAT_PLAN_MSG)

    logger.info(f"Beat plan {plan.id} saved: user {user.id} route {route.route_code} days {plan.days}")
    return plan


def delete_beat_plan(plan_id):
    plan = get_or_raise(BeatPlan, plan_id, "Beat plan")
    db.session.delete(plan)
    db.session.commit()


def list_beat_plans(user_id=None, include_inactive=False):
    query = BeatPlan.query.join(Route, Route.id == BeatPlan.route_id)
    if user_id is not None:
        query = query.filter(BeatPlan.user_id == safe_int(user_id))
    if not include_inactive:
        query = query.filter(BeatPlan.is_active.is_(True))
    return query.order_by(BeatPlan.user_id.asc(), Route.route_name.asc()).all()


def routes_for_day(user_id, day=None):
    """
    The routes a user works on a given date (default: local today), each with
    its active customers in visit order.
    """
    day = day or get_local_today()
    weekday = WEEKDAYS[day.weekday()]
    day_column = getattr(BeatPlan, f'day_{weekday}')

    plans = BeatPlan.query.join(Route, Route.id == BeatPlan.route_id).filter(
        BeatPlan.user_id == user_id,
        BeatPlan.is_active.is_(True),
        Route.is_active.is_(True),
        day_column.is_(True),
    ).order_by(Route.route_name.asc()).all()

    routes = []
    for plan in plans:
        stops = [
            rc.to_dict() for rc in list_route_customers(plan.route_id)
            if rc.is_active and rc.customer.is_active
        ]
        data = plan.route.to_dict()
        data['beat_plan_id'] = plan.id
        data['customers'] = stops
        routes.append(data)

    return {'date': day.isoformat(), 'weekday': weekday, 'routes': routes}

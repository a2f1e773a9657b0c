"""
Sales order endpoints: list, detail, submit, live preview and price lookup
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from models import Customer, Product, SaleOrder, as_float
from access_control import visible_orders, can_see_customer
from errors import NotFoundError, ValidationError
from services_orders import resolve_price, preview_order, create_order, get_visible_order
from timezone_utils import get_local_today
from utils import clean_str, safe_int, parse_date_field
from app import db

logger = logging.getLogger(__name__)

orders_bp = Blueprint('orders', __name__, url_prefix='/api/orders')


def _check_customer_access(customer_id):
    """Field staff can only order for their assigned customers"""
    key = safe_int(customer_id)
    customer = db.session.get(Customer, key) if key is not None else None
    if customer is not None and not can_see_customer(current_user, customer):
        raise ValidationError(f"Customer {customer_id} not found")


@orders_bp.route('', methods=['GET'])
@login_required
def list_orders():
    query = visible_orders(current_user)
    customer_id = safe_int(request.args.get('customer_id'))
    if customer_id is not None:
        query = query.filter(SaleOrder.customer_id == customer_id)
    status = clean_str(request.args.get('status'))
    if status:
        query = query.filter(SaleOrder.order_status == status.lower())
    orders = query.order_by(SaleOrder.order_date.desc(), SaleOrder.id.desc()).all()
    return jsonify([o.to_dict() for o in orders])


@orders_bp.route('/<int:order_id>', methods=['GET'])
@login_required
def get_order(order_id):
    order = get_visible_order(current_user, order_id)
    return jsonify(order.to_dict(with_lines=True))


@orders_bp.route('', methods=['POST'])
@login_required
def submit_order():
    data = request.get_json(silent=True) or {}
    _check_customer_access(data.get('customer_id'))
    order = create_order(
        current_user.id,
        data.get('customer_id'),
        data.get('lines') or [],
        order_date=data.get('order_date'),
        delivery_date=data.get('delivery_date'),
        status=data.get('order_status'),
        notes=data.get('notes'),
    )
    return jsonify(order.to_dict(with_lines=True)), 201


@orders_bp.route('/preview', methods=['POST'])
@login_required
def preview():
    """Price the lines without saving; mirrors what submit would store"""
    data = request.get_json(silent=True) or {}
    if data.get('customer_id') in (None, ''):
        raise ValidationError("Please select a customer")
    _check_customer_access(data.get('customer_id'))
    return jsonify(preview_order(data.get('customer_id'), data.get('lines') or [], data.get('order_date')))


@orders_bp.route('/price', methods=['GET'])
@login_required
def price_lookup():
    """Pre-fill values for one product line: price list entry plus GST rate"""
    product_id = safe_int(request.args.get('product_id'))
    customer_id = safe_int(request.args.get('customer_id'))
    if product_id is None or customer_id is None:
        raise ValidationError("product_id and customer_id are required")

    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    customer = db.session.get(Customer, customer_id)
    if customer is None or not can_see_customer(current_user, customer):
        raise NotFoundError(f"Customer {customer_id} not found")

    on_date = parse_date_field(request.args.get('date'), "date", default=get_local_today())
    resolution = resolve_price(product.id, customer.customer_type, on_date)
    data = resolution.to_dict()
    data['product_id'] = product.id
    data['tax_percentage'] = as_float(product.gst_rate)
    return jsonify(data)

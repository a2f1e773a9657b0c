"""
Customer master data, shop photos, shop location and media files
"""
import logging
from flask import Blueprint, request, jsonify, current_app, send_from_directory
from flask_login import login_required, current_user
from models import Customer, SaleOrder
from access_control import manager_required, visible_customers, can_see_customer, visible_orders
from errors import NotFoundError, ValidationError
from location_utils import validate_coordinates, customers_within, DEFAULT_NEARBY_RADIUS_METERS
from services_customers import (
    search_customers, save_customer, capture_location, store_customer_photo, delete_customer_photo,
)
from utils import clean_str, safe_float, truthy
from app import db

logger = logging.getLogger(__name__)

customers_bp = Blueprint('customers', __name__)


def _visible_customer_or_404(customer_id):
    customer = db.session.get(Customer, customer_id)
    if customer is None or not can_see_customer(current_user, customer):
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


@customers_bp.route('/api/customers', methods=['GET'])
@login_required
def list_customers():
    customers = search_customers(
        visible_customers(current_user),
        q=request.args.get('q'),
        include_inactive=truthy(request.args.get('include_inactive')),
    )
    return jsonify([c.to_dict() for c in customers])


@customers_bp.route('/api/customers/nearby', methods=['GET'])
@login_required
def nearby_customers():
    """Visible, geotagged customers within radius_m of lat/lng, nearest first"""
    lat, lng, _ = validate_coordinates(request.args.get('lat'), request.args.get('lng'))
    radius = safe_float(request.args.get('radius_m'), DEFAULT_NEARBY_RADIUS_METERS)
    if radius <= 0:
        raise ValidationError("radius_m must be greater than zero")

    candidates = visible_customers(current_user).filter(
        Customer.is_active.is_(True),
        Customer.latitude.isnot(None),
        Customer.longitude.isnot(None),
    ).all()
    result = []
    for customer, distance in customers_within(candidates, lat, lng, radius):
        data = customer.to_dict()
        data['distance_m'] = round(distance, 1)
        result.append(data)
    return jsonify(result)


@customers_bp.route('/api/customers/<int:customer_id>', methods=['GET'])
@login_required
def get_customer(customer_id):
    customer = _visible_customer_or_404(customer_id)
    return jsonify(customer.to_dict(detail=True))


@customers_bp.route('/api/customers', methods=['POST'])
@manager_required
def create_customer():
    data = request.get_json(silent=True) or {}
    customer = save_customer(data, created_by=current_user.id)
    logger.info(f"Customer {customer.customer_code} created by user {current_user.id}")
    return jsonify(customer.to_dict(detail=True)), 201


@customers_bp.route('/api/customers/<int:customer_id>', methods=['PUT'])
@manager_required
def update_customer(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    data = request.get_json(silent=True) or {}
    save_customer(data, customer=customer)
    return jsonify(customer.to_dict(detail=True))


@customers_bp.route('/api/customers/<int:customer_id>/deactivate', methods=['POST'])
@manager_required
def deactivate_customer(customer_id):
    customer = db.get_or_404(Customer, customer_id)
    data = request.get_json(silent=True) or {}
    customer.disable(clean_str(data.get('reason')))
    db.session.commit()
    logger.info(f"Customer {customer.customer_code} deactivated by user {current_user.id}")
    return jsonify(customer.to_dict(detail=True))


@customers_bp.route('/api/customers/<int:customer_id>/orders', methods=['GET'])
@login_required
def customer_orders(customer_id):
    """Orders of one customer, for picking the order a collection belongs to"""
    customer = _visible_customer_or_404(customer_id)
    orders = visible_orders(current_user).filter(SaleOrder.customer_id == customer.id)\
        .order_by(SaleOrder.order_date.desc(), SaleOrder.id.desc())\
        .all()
    return jsonify([o.to_dict() for o in orders])


@customers_bp.route('/api/customers/<int:customer_id>/location', methods=['POST'])
@login_required
def set_customer_location(customer_id):
    customer = _visible_customer_or_404(customer_id)
    data = request.get_json(silent=True) or {}
    capture_location(customer, data.get('latitude'), data.get('longitude'), data.get('accuracy'))
    return jsonify(customer.to_dict(detail=True))


@customers_bp.route('/api/customers/<int:customer_id>/photos/<int:image_order>', methods=['POST'])
@login_required
def upload_customer_photo(customer_id, image_order):
    customer = _visible_customer_or_404(customer_id)
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({"error": "No image uploaded"}), 400

    media = store_customer_photo(customer, image_order, upload.read(), uploaded_by=current_user.id)
    logger.info(f"Photo slot {image_order} stored for customer {customer.customer_code} ({media.size_bytes} bytes)")
    return jsonify(media.to_dict()), 201


@customers_bp.route('/api/customers/<int:customer_id>/photos/<int:image_order>', methods=['DELETE'])
@login_required
def remove_customer_photo(customer_id, image_order):
    customer = _visible_customer_or_404(customer_id)
    if not delete_customer_photo(customer, image_order):
        raise NotFoundError(f"No photo in slot {image_order}")
    return jsonify({"success": True})


@customers_bp.route('/media/<path:filename>', methods=['GET'])
@login_required
def media_file(filename):
    return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

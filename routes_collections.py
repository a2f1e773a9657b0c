"""
Payment collection endpoints
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from models import Customer, Collection
from access_control import visible_collections, can_see_customer
from errors import ValidationError
from services_orders import create_collection
from utils import clean_str, safe_int, parse_date_field
from app import db

logger = logging.getLogger(__name__)

collections_bp = Blueprint('collections', __name__, url_prefix='/api/collections')


@collections_bp.route('', methods=['GET'])
@login_required
def list_collections():
    query = visible_collections(current_user)
    customer_id = safe_int(request.args.get('customer_id'))
    if customer_id is not None:
        query = query.filter(Collection.customer_id == customer_id)
    payment_mode = clean_str(request.args.get('payment_mode'))
    if payment_mode:
        query = query.filter(Collection.payment_mode == payment_mode.lower())
    from_date = parse_date_field(request.args.get('from_date'), "from_date")
    if from_date:
        query = query.filter(Collection.collection_date >= from_date)
    to_date = parse_date_field(request.args.get('to_date'), "to_date")
    if to_date:
        query = query.filter(Collection.collection_date <= to_date)

    collections = query.order_by(Collection.collection_date.desc(), Collection.id.desc()).all()
    return jsonify([c.to_dict() for c in collections])


@collections_bp.route('', methods=['POST'])
@login_required
def add_collection():
    data = request.get_json(silent=True) or {}
    key = safe_int(data.get('customer_id'))
    customer = db.session.get(Customer, key) if key is not None else None
    if customer is not None and not can_see_customer(current_user, customer):
        raise ValidationError(f"Customer {data.get('customer_id')} not found")

    collection = create_collection(current_user.id, data)
    return jsonify(collection.to_dict()), 201

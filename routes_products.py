"""
Product catalogue and price list endpoints
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from models import Product, ProductPrice
from access_control import manager_required
from services_products import list_products, save_product, list_prices, save_price
from utils import clean_str, safe_int, truthy
from app import db

logger = logging.getLogger(__name__)

products_bp = Blueprint('products', __name__, url_prefix='/api')


@products_bp.route('/products', methods=['GET'])
@login_required
def get_products():
    products = list_products(request.args.get('q'), truthy(request.args.get('include_inactive')))
    return jsonify([p.to_dict() for p in products])


@products_bp.route('/products', methods=['POST'])
@manager_required
def create_product():
    product = save_product(request.get_json(silent=True) or {})
    logger.info(f"Product {product.product_code} created by user {current_user.id}")
    return jsonify(product.to_dict()), 201


@products_bp.route('/products/<int:product_id>', methods=['PUT'])
@manager_required
def update_product(product_id):
    product = db.get_or_404(Product, product_id)
    save_product(request.get_json(silent=True) or {}, product=product)
    return jsonify(product.to_dict())


@products_bp.route('/prices', methods=['GET'])
@login_required
def get_prices():
    entries = list_prices(safe_int(request.args.get('product_id')), truthy(request.args.get('include_inactive')))
    return jsonify([e.to_dict() for e in entries])


@products_bp.route('/prices', methods=['POST'])
@manager_required
def create_price():
    entry = save_price(request.get_json(silent=True) or {})
    logger.info(f"Price entry {entry.id} ({entry.customer_type}) added for product {entry.product_id}")
    return jsonify(entry.to_dict()), 201


@products_bp.route('/prices/<int:price_id>', methods=['PUT'])
@manager_required
def update_price(price_id):
    entry = db.get_or_404(ProductPrice, price_id)
    save_price(request.get_json(silent=True) or {}, entry=entry)
    return jsonify(entry.to_dict())


@products_bp.route('/prices/<int:price_id>/deactivate', methods=['POST'])
@manager_required
def deactivate_price(price_id):
    entry = db.get_or_404(ProductPrice, price_id)
    data = request.get_json(silent=True) or {}
    entry.disable(clean_str(data.get('reason')))
    db.session.commit()
    return jsonify(entry.to_dict())

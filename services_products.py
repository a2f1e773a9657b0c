"""
Product catalogue and price list maintenance
"""
import logging
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import Product, ProductPrice
from order_status_constants import PRICE_CUSTOMER_TYPES, check_choice
from errors import ValidationError
from services import get_or_raise
from timezone_utils import get_local_today
from utils import clean_str, safe_float, safe_decimal, parse_date_field, truthy
from app import db

logger = logging.getLogger(__name__)


def list_products(q=None, include_inactive=False):
    query = Product.query
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    q = clean_str(q)
    if q:
        term = f"%{q}%"
        query = query.filter(or_(
            Product.product_code.ilike(term),
            Product.product_name.ilike(term),
            Product.category.ilike(term),
        ))
    return query.order_by(Product.product_name.asc()).all()


def _gst_rate(value):
    rate = safe_float(value, 0.0)
    if rate < 0:
        raise ValidationError("GST rate cannot be negative")
    return rate


def save_product(data, product=None):
    name = clean_str(data.get('product_name'))
    if not name:
        raise ValidationError("Product name is required")

    gst_rate = _gst_rate(data.get('gst_rate'))

    if product is None:
        code = clean_str(data.get('product_code'))
        if not code:
            raise ValidationError("Product code is required")
        if Product.query.filter_by(product_code=code).first():
            raise ValidationError(f"Product code '{code}' already exists")
        product = Product(product_code=code)
        db.session.add(product)

    product.product_name = name
    product.category = clean_str(data.get('category'))
    product.subcategory = clean_str(data.get('subcategory'))
    product.unit_of_measure = clean_str(data.get('unit_of_measure')) or 'pcs'
    product.hsn_code = clean_str(data.get('hsn_code'))
    product.gst_rate = safe_decimal(gst_rate)
    product.description = clean_str(data.get('description'))
    if 'is_active' in data:
        product.is_active = truthy(data.get('is_active'))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Product code '{product.product_code}' already exists")
    return product


def list_prices(product_id=None, include_inactive=False):
    query = ProductPrice.query
    if product_id is not None:
        query = query.filter(ProductPrice.product_id == product_id)
    if not include_inactive:
        query = query.filter(ProductPrice.is_active.is_(True))
    return query.order_by(ProductPrice.product_id.asc(), ProductPrice.customer_type.asc(),
                          ProductPrice.effective_from.desc()).all()


def save_price(data, entry=None):
    """
    Create or update a price list entry. Overlapping active entries for the
    same product and tier are allowed; resolve_price picks the newest.
    """
    product = get_or_raise(Product, data.get('product_id'), "Product") if entry is None else entry.product
    customer_type = check_choice(data.get('customer_type'), PRICE_CUSTOMER_TYPES, "customer_type")
    price = safe_float(data.get('price'))
    if price is None or price < 0:
        raise ValidationError("Price must be a number of at least 0")
    discount = safe_float(data.get('discount_percentage'), 0.0)
    if not 0 <= discount <= 100:
        raise ValidationError("Discount percentage must be between 0 and 100")

    effective_from = parse_date_field(data.get('effective_from'), "effective_from", default=get_local_today())
    effective_to = parse_date_field(data.get('effective_to'), "effective_to")
    if effective_to is not None and effective_to < effective_from:
        raise ValidationError("effective_to cannot be before effective_from")

    if entry is None:
        entry = ProductPrice(product_id=product.id)
        db.session.add(entry)

    entry.customer_type = customer_type
    entry.price = safe_decimal(price)
    entry.discount_percentage = safe_decimal(discount)
    entry.effective_from = effective_from
    entry.effective_to = effective_to
    if 'is_active' in data:
        entry.is_active = truthy(data.get('is_active'))

    db.session.commit()
    return entry

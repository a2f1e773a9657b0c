"""
Sales order and collection services.

Price resolution, order pricing and atomic order submission; payment collections.
"""
import time
import logging
from decimal import Decimal
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from models import Customer, Product, ProductPrice, SaleOrder, SaleOrderLine, Collection
from order_status_constants import (
    PRICE_CUSTOMER_TYPES, SUBMITTABLE_ORDER_STATUSES, PAYMENT_MODES, COLLECTION_STATUSES, check_choice,
)
from pricing import (
    LineInput, PriceResolution, apply_price_resolution, price_line, aggregate_order,
    totals_drift, DRIFT_TOLERANCE,
)
from errors import ValidationError, NotFoundError
from timezone_utils import get_local_today
from utils import clean_str, safe_int, safe_float, safe_decimal, parse_date_field
from services import get_or_raise
from app import db

logger = logging.getLogger(__name__)

NO_PRODUCT_MSG = "Please add at least one product"


class StoreError(Exception):
    """A database write failed and was rolled back (HTTP 500)."""


def _epoch_ms():
    return int(time.time() * 1000)


def next_document_no(prefix, model, column):
    """PREFIX + epoch milliseconds, bumped until unused"""
    stamp = _epoch_ms()
    while db.session.query(model.id).filter(column == f"{prefix}{stamp}").first():
        stamp += 1
    return f"{prefix}{stamp}"


# =============================================================================
# PRICE RESOLUTION
# =============================================================================

def price_tier_for(customer_type):
    """
    Map a customer's type onto a price list tier.
    Only configured aliases are applied; returns None when there is no tier.
    """
    aliases = current_app.config.get('CUSTOMER_TYPE_PRICE_ALIASES') or {}
    tier = aliases.get(customer_type, customer_type)
    if tier not in PRICE_CUSTOMER_TYPES:
        logger.warning(f"Customer type '{customer_type}' has no price list tier; price lookups will find nothing")
        return None
    return tier


def resolve_price(product_id, customer_type, on_date=None):
    """
    Find the active price entry for (product, customer type).

    When several active entries match, the one with the latest effective_from
    wins (lowest id on ties) and a warning is logged.
    With on_date, only entries whose effective range covers that date qualify.

    Returns a PriceResolution; .found is False when nothing matched.
    """
    tier = price_tier_for(customer_type)
    if tier is None:
        return PriceResolution.not_found(customer_type)

    query = ProductPrice.query.filter(
        ProductPrice.product_id == product_id,
        ProductPrice.customer_type == tier,
        ProductPrice.is_active.is_(True),
    )
    if on_date is not None:
        query = query.filter(
            ProductPrice.effective_from <= on_date,
            or_(ProductPrice.effective_to.is_(None), ProductPrice.effective_to >= on_date),
        )
    matches = query.order_by(ProductPrice.effective_from.desc(), ProductPrice.id.asc()).all()

    if not matches:
        return PriceResolution.not_found(tier)
    if len(matches) > 1:
        logger.warning(
            f"{len(matches)} active prices for product {product_id} tier '{tier}'; using entry {matches[0].id}"
        )

    entry = matches[0]
    return PriceResolution(
        found=True,
        customer_type=tier,
        unit_price=float(entry.price),
        discount_percentage=float(entry.discount_percentage or 0),
        entry_id=entry.id,
    )


# =============================================================================
# ORDERS
# =============================================================================

def _line_value(raw, key):
    """None when the caller left the field out, so it can be pre-filled"""
    value = raw.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return value


def build_order_lines(customer, raw_lines, on_date=None):
    """
    Turn submitted line dicts into priced LineInputs.

    Lines without a product are dropped. Missing price/discount come from the
    price list, missing tax from the product's GST rate, a missing quantity
    key is 1. Supplied values are kept as given; an empty or unparsable
    quantity counts as 0.

    Returns a list of (LineInput, PriceResolution or None, Product).
    """
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    selected = [raw for raw in raw_lines if isinstance(raw, dict) and _line_value(raw, 'product_id') is not None]
    if not selected:
        raise ValidationError(NO_PRODUCT_MSG)

    built = []
    for raw in selected:
        product_id = safe_int(raw['product_id'])
        product = db.session.get(Product, product_id) if product_id is not None else None
        if product is None:
            raise ValidationError(f"Product {raw['product_id']} not found")

        quantity = raw.get('quantity')
        unit_price = _line_value(raw, 'unit_price')
        discount = _line_value(raw, 'discount_percentage')
        tax = _line_value(raw, 'tax_percentage')

        line = LineInput.from_raw(
            product.id,
            quantity='1' if quantity is None else quantity,
            unit_price='0' if unit_price is None else unit_price,
            discount_percentage='0' if discount is None else discount,
            tax_percentage=product.gst_rate if tax is None else tax,
        )

        resolution = None
        if unit_price is None or discount is None:
            resolution = resolve_price(product.id, customer.customer_type, on_date)
            prefilled = apply_price_resolution(line, resolution)
            # Only fill the fields the caller left empty
            line = LineInput(
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price=prefilled.unit_price if unit_price is None else line.unit_price,
                discount_percentage=prefilled.discount_percentage if discount is None else line.discount_percentage,
                tax_percentage=line.tax_percentage,
            )
        built.append((line, resolution, product))
    return built


def preview_order(customer_id, raw_lines, order_date=None):
    """Price an order without saving it"""
    customer = get_or_raise(Customer, customer_id, "Customer")
    on_date = parse_date_field(order_date, "order_date", default=get_local_today())
    built = build_order_lines(customer, raw_lines, on_date)
    lines = [line for line, _, _ in built]
    totals = aggregate_order(lines)

    priced = []
    for line_no, (line, resolution, product) in enumerate(built, start=1):
        amounts = price_line(line)
        priced.append({
            'line_no': line_no,
            'product_id': product.id,
            'product_name': product.product_name,
            'quantity': amounts.quantity,
            'unit_price': amounts.unit_price,
            'discount_percentage': amounts.discount_percentage,
            'tax_percentage': amounts.tax_percentage,
            'subtotal': amounts.subtotal,
            'discount_amount': amounts.discount_amount,
            'taxable_amount': amounts.taxable_amount,
            'tax_amount': amounts.tax_amount,
            'line_total': amounts.line_total,
            'price_found': resolution.found if resolution is not None else None,
        })
    return {
        'lines': priced,
        'total_amount': totals.total_amount,
        'discount_amount': totals.discount_amount,
        'tax_amount': totals.tax_amount,
        'net_amount': totals.net_amount,
    }


def create_order(created_by, customer_id, lines, order_date=None, delivery_date=None, status='draft', notes=None):
    """
    Validate, price and persist an order with its lines in one transaction.

    Raises:
        ValidationError: missing customer/product, bad status or dates
        StoreError: the write failed; nothing was saved
    """
    if customer_id in (None, ''):
        raise ValidationError("Please select a customer")
    customer = db.session.get(Customer, safe_int(customer_id)) if safe_int(customer_id) else None
    if customer is None:
        raise ValidationError(f"Customer {customer_id} not found")

    status = check_choice(status, SUBMITTABLE_ORDER_STATUSES, "order_status", default='draft')
    order_day = parse_date_field(order_date, "order_date", default=get_local_today())
    delivery_day = parse_date_field(delivery_date, "delivery_date")

    built = build_order_lines(customer, lines, order_day)
    inputs = [line for line, _, _ in built]
    totals = aggregate_order(inputs)

    drift = totals_drift(totals)
    if abs(drift) > DRIFT_TOLERANCE:
        logger.warning(f"Order totals drift {drift:.6f} for customer {customer.id}")

    order = SaleOrder(
        order_no=next_document_no("ORD", SaleOrder, SaleOrder.order_no),
        customer_id=customer.id,
        order_date=order_day,
        delivery_date=delivery_day,
        order_status=status,
        notes=clean_str(notes),
        created_by=created_by,
    )
    gross = []
    for line_no, line in enumerate(inputs, start=1):
        amounts = price_line(line)
        gross.append(safe_decimal(amounts.subtotal))
        order.lines.append(SaleOrderLine(
            line_no=line_no,
            product_id=line.product_id,
            quantity=safe_decimal(amounts.quantity, 3),
            unit_price=safe_decimal(amounts.unit_price),
            discount_percentage=safe_decimal(amounts.discount_percentage),
            discount_amount=safe_decimal(amounts.discount_amount),
            tax_percentage=safe_decimal(amounts.tax_percentage),
            tax_amount=safe_decimal(amounts.tax_amount),
            line_total=safe_decimal(amounts.line_total),
        ))

    # Header totals are sums of the stored, already rounded line values
    order.total_amount = sum(gross, Decimal('0'))
    order.discount_amount = sum((ol.discount_amount for ol in order.lines), Decimal('0'))
    order.tax_amount = sum((ol.tax_amount for ol in order.lines), Decimal('0'))
    order.net_amount = sum((ol.line_total for ol in order.lines), Decimal('0'))

    try:
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create order for customer {customer.id}: {str(e)}", exc_info=True)
        raise StoreError("Failed to create order")

    logger.info(f"Order {order.order_no} created by user {created_by}: {len(inputs)} lines, net {order.net_amount}")
    return order


# =============================================================================
# COLLECTIONS
# =============================================================================

def create_collection(collected_by, data):
    """
    Record a payment collected from a customer.
    An order, when given, must belong to the same customer.
    """
    customer_id = data.get('customer_id')
    if customer_id in (None, ''):
        raise ValidationError("Please select a customer")
    customer = db.session.get(Customer, safe_int(customer_id)) if safe_int(customer_id) else None
    if customer is None:
        raise ValidationError(f"Customer {customer_id} not found")

    amount = safe_float(data.get('amount'))
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")

    order = None
    if data.get('order_id') not in (None, ''):
        order = db.session.get(SaleOrder, safe_int(data.get('order_id'))) if safe_int(data.get('order_id')) else None
        if order is None or order.customer_id != customer.id:
            raise ValidationError("Order does not belong to this customer")

    collection = Collection(
        collection_no=next_document_no("COL", Collection, Collection.collection_no),
        customer_id=customer.id,
        order_id=order.id if order else None,
        collection_date=parse_date_field(data.get('collection_date'), "collection_date", default=get_local_today()),
        amount=safe_decimal(amount),
        payment_mode=check_choice(data.get('payment_mode'), PAYMENT_MODES, "payment_mode", default='cash'),
        payment_reference=clean_str(data.get('payment_reference')),
        collection_status=check_choice(data.get('collection_status'), COLLECTION_STATUSES, "collection_status",
                                       default='pending'),
        notes=clean_str(data.get('notes')),
        collected_by=collected_by,
    )
    try:
        db.session.add(collection)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to record collection: {str(e)}", exc_info=True)
        raise StoreError("Failed to record collection")

    logger.info(f"Collection {collection.collection_no} recorded by user {collected_by}")
    return collection


def get_visible_order(user, order_id):
    from access_control import visible_orders
    order = visible_orders(user).filter(SaleOrder.id == safe_int(order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order

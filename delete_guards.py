"""
Delete Guards - block hard deletes of master data that orders or collections still reference.

Customers and products are normally deactivated (ActivatableMixin.disable); these
SQLAlchemy before_delete listeners make sure a hard delete can't orphan sales history.

Usage:
    from delete_guards import register_all_guards
    register_all_guards()  # Call once during app initialization
"""

import logging
from sqlalchemy import event
from sqlalchemy.orm import object_session
from errors import ValidationError

logger = logging.getLogger(__name__)

# model -> listener currently attached
_registered = {}


def has_rows(sess, query):
    """Check if a query returns any rows"""
    return sess.query(query.exists()).scalar()


def block_if_related(entity_label, label_attr, checks):
    """
    Create a before_delete listener that blocks deletion if any dependency check passes.

    Args:
        entity_label: Human-readable entity name for error messages
        label_attr: Attribute used to name the record in the message
        checks: List of (label, query_fn) tuples where query_fn returns True if dependencies exist
    """
    def _inner(mapper, connection, target):
        sess = object_session(target)
        if sess is None:
            return

        for label, query_fn in checks:
            if query_fn(sess, target):
                raise ValidationError(
                    f"Cannot delete {entity_label} '{getattr(target, label_attr, target.id)}': {label} exist. "
                    f"Deactivate it instead."
                )
    return _inner


# =============================================================================
# CUSTOMER DELETE GUARDS
# =============================================================================

def customer_has_orders(sess, customer):
    from models import SaleOrder
    return has_rows(sess, sess.query(SaleOrder).filter_by(customer_id=customer.id))


def customer_has_collections(sess, customer):
    from models import Collection
    return has_rows(sess, sess.query(Collection).filter_by(customer_id=customer.id))


# =============================================================================
# PRODUCT DELETE GUARDS
# =============================================================================

def product_has_order_lines(sess, product):
    from models import SaleOrderLine
    return has_rows(sess, sess.query(SaleOrderLine).filter_by(product_id=product.id))


def product_has_prices(sess, product):
    from models import ProductPrice
    return has_rows(sess, sess.query(ProductPrice).filter_by(product_id=product.id))


# =============================================================================
# USER DELETE GUARDS
# =============================================================================

def user_has_orders(sess, user):
    from models import SaleOrder
    return has_rows(sess, sess.query(SaleOrder).filter_by(created_by=user.id))


def user_has_collections(sess, user):
    from models import Collection
    return has_rows(sess, sess.query(Collection).filter_by(collected_by=user.id))


# =============================================================================
# REGISTER ALL GUARDS
# =============================================================================

def register_all_guards():
    """Register all delete guards. Safe to call more than once."""
    from models import Customer, Product, User

    guards = [
        (Customer, block_if_related("customer", "customer_code", [
            ("sale orders", customer_has_orders),
            ("collections", customer_has_collections),
        ])),
        (Product, block_if_related("product", "product_code", [
            ("order lines", product_has_order_lines),
            ("price entries", product_has_prices),
        ])),
        (User, block_if_related("user", "mobile_no", [
            ("sale orders", user_has_orders),
            ("collections", user_has_collections),
        ])),
    ]

    for model, listener in guards:
        # Drop the guard from an earlier registration before adding the new one
        existing = _registered.get(model)
        if existing is not None and event.contains(model, "before_delete", existing):
            event.remove(model, "before_delete", existing)
        event.listen(model, "before_delete", listener)
        _registered[model] = listener

    logger.info("Delete guards registered for: Customer, Product, User")

import hashlib
import secrets
from datetime import timedelta
from app import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from mixins import ActivatableMixin, TimestampMixin
from timezone_utils import get_utc_now
from db_types import UTCDateTime, LowerCaseString
from order_status_constants import MANAGER_ROLES, WEEKDAYS

# All timestamps in the database are stored in UTC
# Use get_utc_now() from timezone_utils for current UTC time


def as_float(value):
    """Numeric columns come back as Decimal; JSON wants float"""
    return float(value) if value is not None else None


def as_iso(value):
    return value.isoformat() if value is not None else None


# Settings Table
class Setting(db.Model):
    __tablename__ = 'settings'
    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)

    @classmethod
    def get(cls, session, key, default=None):
        """Get a setting value by key with an optional default"""
        setting = session.get(cls, key)
        return setting.value if setting else default

    @classmethod
    def set(cls, session, key, value):
        """Set a setting value by key"""
        setting = session.get(cls, key)
        if setting:
            setting.value = value
        else:
            session.add(cls(key=key, value=value))
        session.flush()

    @classmethod
    def get_json(cls, session, key, default=None):
        """Get a setting value as JSON"""
        import json
        raw = cls.get(session, key)
        if raw is None:
            return {} if default is None else default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {} if default is None else default

    @classmethod
    def set_json(cls, session, key, value):
        """Set a setting value as JSON"""
        import json
        return cls.set(session, key, json.dumps(value))


# User Model
class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    mobile_no = db.Column(db.String(10), unique=True, nullable=False)  # 10-digit login id
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    password = db.Column(db.String(256), nullable=False)  # werkzeug hash, never plain text
    role = db.Column(LowerCaseString(20), nullable=False, default='field_staff')  # 'admin', 'sales_manager', 'field_staff'
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    # ActivatableMixin fields defined directly so UserMixin.is_active doesn't shadow the column
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default='true')
    disabled_at = db.Column(UTCDateTime(), nullable=True)
    disabled_reason = db.Column(db.String(255), nullable=True)

    __table_args__ = (
        db.Index('idx_users_role_active', 'role', 'is_active'),
    )

    def set_password(self, raw_password):
        self.password = generate_password_hash(raw_password)

    def check_password(self, raw_password):
        return check_password_hash(self.password, raw_password or '')

    @property
    def is_manager(self):
        return self.role in MANAGER_ROLES

    def disable(self, reason=None):
        """Disable/deactivate this user."""
        self.is_active = False
        self.disabled_at = get_utc_now()
        self.disabled_reason = reason

    def to_dict(self):
        return {
            'id': self.id,
            'mobile_no': self.mobile_no,
            'full_name': self.full_name,
            'email': self.email,
            'role': self.role,
            'is_active': self.is_active,
        }


class AuthToken(db.Model):
    """Server-side login session for API clients. Only the SHA-256 of the token is stored."""
    __tablename__ = 'auth_tokens'
    id = db.Column(db.Integer, primary_key=True)
    token_hash = db.Column(db.String(64), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)
    expires_at = db.Column(UTCDateTime(), nullable=False)
    revoked_at = db.Column(UTCDateTime(), nullable=True)

    user = db.relationship('User', lazy='joined')

    @staticmethod
    def _digest(raw_token):
        return hashlib.sha256(raw_token.encode('utf-8')).hexdigest()

    @classmethod
    def issue(cls, session, user, ttl_hours):
        """Create a token for `user`; returns (row, raw_token). The raw token is only available here."""
        raw_token = secrets.token_urlsafe(32)
        row = cls(
            token_hash=cls._digest(raw_token),
            user_id=user.id,
            expires_at=get_utc_now() + timedelta(hours=ttl_hours),
        )
        session.add(row)
        return row, raw_token

    @classmethod
    def find_valid(cls, raw_token):
        if not raw_token:
            return None
        row = cls.query.filter_by(token_hash=cls._digest(raw_token)).first()
        if row is None or row.revoked_at is not None or row.expires_at <= get_utc_now():
            return None
        return row

    def revoke(self):
        self.revoked_at = get_utc_now()


# Many-to-many: which field staff may see/serve a customer
class CustomerUserAssignment(db.Model):
    __tablename__ = 'customer_user_assignments'
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    assigned_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'user_id', name='uq_customer_user_assignment'),
    )


class Customer(db.Model, ActivatableMixin, TimestampMixin):
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    customer_code = db.Column(db.String(50), unique=True, nullable=False)
    customer_name = db.Column(db.String(200), nullable=False)
    contact_person = db.Column(db.String(120), nullable=True)
    mobile_no = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    gstin = db.Column(db.String(20), nullable=True)
    pan_no = db.Column(db.String(20), nullable=True)
    customer_type = db.Column(LowerCaseString(20), nullable=False, default='retail')  # retail / wholesale / distributor
    credit_limit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    credit_days = db.Column(db.Integer, nullable=False, default=0)
    owner_name = db.Column(db.String(120), nullable=True)
    address_line1 = db.Column(db.String(200), nullable=True)
    address_line2 = db.Column(db.String(200), nullable=True)
    address_line3 = db.Column(db.String(200), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    pincode = db.Column(db.String(10), nullable=True)

    # Last captured shop location
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    location_accuracy = db.Column(db.Float, nullable=True)  # metres
    location_captured_at = db.Column(UTCDateTime(), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    assigned_users = db.relationship('User', secondary='customer_user_assignments', lazy='selectin',
                                     order_by='User.full_name')
    media = db.relationship('CustomerMedia', back_populates='customer', order_by='CustomerMedia.image_order',
                            cascade='all, delete-orphan')

    def to_dict(self, detail=False):
        data = {
            'id': self.id,
            'customer_code': self.customer_code,
            'customer_name': self.customer_name,
            'contact_person': self.contact_person,
            'mobile_no': self.mobile_no,
            'email': self.email,
            'customer_type': self.customer_type,
            'city': self.city,
            'is_active': self.is_active,
            'latitude': self.latitude,
            'longitude': self.longitude,
        }
        if detail:
            data.update({
                'gstin': self.gstin,
                'pan_no': self.pan_no,
                'credit_limit': as_float(self.credit_limit),
                'credit_days': self.credit_days,
                'owner_name': self.owner_name,
                'address_line1': self.address_line1,
                'address_line2': self.address_line2,
                'address_line3': self.address_line3,
                'state': self.state,
                'pincode': self.pincode,
                'location_accuracy': self.location_accuracy,
                'location_captured_at': as_iso(self.location_captured_at),
                'assigned_users': [{'id': u.id, 'full_name': u.full_name} for u in self.assigned_users],
                'media': [m.to_dict() for m in self.media],
            })
        return data


class CustomerMedia(db.Model):
    """Customer shop photos; three slots per customer (image_order 1-3)."""
    __tablename__ = 'customer_media'
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    image_order = db.Column(db.Integer, nullable=False)
    file_path = db.Column(db.String(255), nullable=False)  # relative to UPLOAD_FOLDER
    size_bytes = db.Column(db.Integer, nullable=False, default=0)
    uploaded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    customer = db.relationship('Customer', back_populates='media')

    __table_args__ = (
        db.UniqueConstraint('customer_id', 'image_order', name='uq_customer_media_slot'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'image_order': self.image_order,
            'url': f"/media/{self.file_path}",
            'size_bytes': self.size_bytes,
            'created_at': as_iso(self.created_at),
        }


class Product(db.Model, ActivatableMixin, TimestampMixin):
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(50), unique=True, nullable=False)
    product_name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    subcategory = db.Column(db.String(100), nullable=True)
    unit_of_measure = db.Column(db.String(20), nullable=False, default='pcs')
    hsn_code = db.Column(db.String(20), nullable=True)
    gst_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)  # percent
    description = db.Column(db.Text, nullable=True)

    prices = db.relationship('ProductPrice', back_populates='product', order_by='ProductPrice.id',
                             passive_deletes='all')

    def to_dict(self):
        return {
            'id': self.id,
            'product_code': self.product_code,
            'product_name': self.product_name,
            'category': self.category,
            'subcategory': self.subcategory,
            'unit_of_measure': self.unit_of_measure,
            'hsn_code': self.hsn_code,
            'gst_rate': as_float(self.gst_rate),
            'description': self.description,
            'is_active': self.is_active,
        }


class ProductPrice(db.Model, ActivatableMixin, TimestampMixin):
    """Price list entry for a product and price tier. Overlapping active rows are possible."""
    __tablename__ = 'product_prices'
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    customer_type = db.Column(LowerCaseString(20), nullable=False)  # retail / dealer / distributor
    price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    effective_from = db.Column(db.Date, nullable=False)
    effective_to = db.Column(db.Date, nullable=True)  # open-ended when null

    product = db.relationship('Product', back_populates='prices')

    __table_args__ = (
        db.Index('idx_product_prices_lookup', 'product_id', 'customer_type', 'is_active'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_code': self.product.product_code if self.product else None,
            'customer_type': self.customer_type,
            'price': as_float(self.price),
            'discount_percentage': as_float(self.discount_percentage),
            'effective_from': as_iso(self.effective_from),
            'effective_to': as_iso(self.effective_to),
            'is_active': self.is_active,
        }


# Sales orders - header and lines are written in one transaction and never edited
class SaleOrder(db.Model):
    __tablename__ = 'sale_orders'
    id = db.Column(db.Integer, primary_key=True)
    order_no = db.Column(db.String(30), unique=True, nullable=False)  # ORD + epoch ms
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    order_date = db.Column(db.Date, nullable=False)
    delivery_date = db.Column(db.Date, nullable=True)
    order_status = db.Column(LowerCaseString(20), nullable=False, default='draft')
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)  # sum of qty * price
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)  # sum of line totals
    notes = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    customer = db.relationship('Customer')
    creator = db.relationship('User')
    lines = db.relationship('SaleOrderLine', back_populates='order', order_by='SaleOrderLine.line_no',
                            cascade='all, delete-orphan')

    def to_dict(self, with_lines=False):
        data = {
            'id': self.id,
            'order_no': self.order_no,
            'customer_id': self.customer_id,
            'customer_name': self.customer.customer_name if self.customer else None,
            'order_date': as_iso(self.order_date),
            'delivery_date': as_iso(self.delivery_date),
            'order_status': self.order_status,
            'total_amount': as_float(self.total_amount),
            'discount_amount': as_float(self.discount_amount),
            'tax_amount': as_float(self.tax_amount),
            'net_amount': as_float(self.net_amount),
            'notes': self.notes,
            'created_by': self.creator.full_name if self.creator else None,
            'created_at': as_iso(self.created_at),
        }
        if with_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
        return data


class SaleOrderLine(db.Model):
    __tablename__ = 'sale_order_lines'
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sale_orders.id', ondelete='CASCADE'), nullable=False)
    line_no = db.Column(db.Integer, nullable=False)  # 1..n in submission order
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_percentage = db.Column(db.Numeric(7, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    order = db.relationship('SaleOrder', back_populates='lines')
    product = db.relationship('Product')

    __table_args__ = (
        db.UniqueConstraint('order_id', 'line_no', name='uq_sale_order_line_no'),
    )

    def to_dict(self):
        return {
            'line_no': self.line_no,
            'product_id': self.product_id,
            'product_code': self.product.product_code if self.product else None,
            'product_name': self.product.product_name if self.product else None,
            'quantity': as_float(self.quantity),
            'unit_price': as_float(self.unit_price),
            'discount_percentage': as_float(self.discount_percentage),
            'discount_amount': as_float(self.discount_amount),
            'tax_percentage': as_float(self.tax_percentage),
            'tax_amount': as_float(self.tax_amount),
            'line_total': as_float(self.line_total),
        }


class Collection(db.Model):
    """Payment collected from a customer, optionally against one of their orders."""
    __tablename__ = 'collections'
    id = db.Column(db.Integer, primary_key=True)
    collection_no = db.Column(db.String(30), unique=True, nullable=False)  # COL + epoch ms
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sale_orders.id'), nullable=True)
    collection_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_mode = db.Column(LowerCaseString(20), nullable=False)  # cash / cheque / upi / neft / card
    payment_reference = db.Column(db.String(100), nullable=True)  # cheque no, UTR, ...
    collection_status = db.Column(LowerCaseString(20), nullable=False, default='pending')
    notes = db.Column(db.Text, nullable=True)
    collected_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    customer = db.relationship('Customer')
    order = db.relationship('SaleOrder')
    collector = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'collection_no': self.collection_no,
            'customer_id': self.customer_id,
            'customer_name': self.customer.customer_name if self.customer else None,
            'order_id': self.order_id,
            'order_no': self.order.order_no if self.order else None,
            'collection_date': as_iso(self.collection_date),
            'amount': as_float(self.amount),
            'payment_mode': self.payment_mode,
            'payment_reference': self.payment_reference,
            'collection_status': self.collection_status,
            'notes': self.notes,
            'collected_by': self.collector.full_name if self.collector else None,
        }


# Routes and beat plans
class Route(db.Model, ActivatableMixin, TimestampMixin):
    __tablename__ = 'routes'
    id = db.Column(db.Integer, primary_key=True)
    route_code = db.Column(db.String(50), unique=True, nullable=False)
    route_name = db.Column(db.String(150), nullable=False)
    route_description = db.Column(db.Text, nullable=True)

    customers = db.relationship('RouteCustomer', back_populates='route',
                                order_by='RouteCustomer.visit_sequence',
                                cascade='all, delete-orphan')
    beat_plans = db.relationship('BeatPlan', back_populates='route', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'route_code': self.route_code,
            'route_name': self.route_name,
            'route_description': self.route_description,
            'is_active': self.is_active,
        }


class RouteCustomer(db.Model):
    __tablename__ = 'route_customers'
    id = db.Column(db.Integer, primary_key=True)
    route_id = db.Column(db.Integer, db.ForeignKey('routes.id', ondelete='CASCADE'), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    visit_sequence = db.Column(db.Integer, nullable=False)  # 1-based; duplicates/gaps allowed after edits
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default='true')
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    created_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    route = db.relationship('Route', back_populates='customers')
    customer = db.relationship('Customer')

    __table_args__ = (
        db.UniqueConstraint('route_id', 'customer_id', name='uq_route_customer'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'route_id': self.route_id,
            'customer_id': self.customer_id,
            'customer_code': self.customer.customer_code if self.customer else None,
            'customer_name': self.customer.customer_name if self.customer else None,
            'visit_sequence': self.visit_sequence,
            'is_active': self.is_active,
        }


class BeatPlan(db.Model, TimestampMixin):
    """Weekly recurring assignment of a route to a field staff user."""
    __tablename__ = 'beat_plans'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    route_id = db.Column(db.Integer, db.ForeignKey('routes.id', ondelete='CASCADE'), nullable=False)
    day_monday = db.Column(db.Boolean, nullable=False, default=False)
    day_tuesday = db.Column(db.Boolean, nullable=False, default=False)
    day_wednesday = db.Column(db.Boolean, nullable=False, default=False)
    day_thursday = db.Column(db.Boolean, nullable=False, default=False)
    day_friday = db.Column(db.Boolean, nullable=False, default=False)
    day_saturday = db.Column(db.Boolean, nullable=False, default=False)
    day_sunday = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default='true')
    assigned_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    user = db.relationship('User', foreign_keys=[user_id])
    route = db.relationship('Route', back_populates='beat_plans')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'route_id', name='uq_beat_plan_user_route'),
    )

    @property
    def days(self):
        return [day for day in WEEKDAYS if getattr(self, f'day_{day}')]

    def runs_on(self, day):
        """True when the plan is scheduled on the weekday of `day` (a date)."""
        return bool(getattr(self, f'day_{WEEKDAYS[day.weekday()]}'))

    def to_dict(self):
        data = {
            'id': self.id,
            'user_id': self.user_id,
            'user_name': self.user.full_name if self.user else None,
            'route_id': self.route_id,
            'route_code': self.route.route_code if self.route else None,
            'route_name': self.route.route_name if self.route else None,
            'is_active': self.is_active,
            'days': self.days,
        }
        for day in WEEKDAYS:
            data[f'day_{day}'] = bool(getattr(self, f'day_{day}'))
        return data


# Telecalling
class Lead(db.Model, TimestampMixin):
    __tablename__ = 'leads'
    id = db.Column(db.Integer, primary_key=True)
    lead_code = db.Column(db.String(50), unique=True, nullable=False)
    company_name = db.Column(db.String(200), nullable=False)
    contact_person = db.Column(db.String(120), nullable=True)
    mobile_no = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    lead_status = db.Column(LowerCaseString(20), nullable=False, default='new')
    estimated_value = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)

    assignee = db.relationship('User', foreign_keys=[assigned_to])

    def to_dict(self):
        return {
            'id': self.id,
            'lead_code': self.lead_code,
            'company_name': self.company_name,
            'contact_person': self.contact_person,
            'mobile_no': self.mobile_no,
            'email': self.email,
            'lead_status': self.lead_status,
            'estimated_value': as_float(self.estimated_value),
            'notes': self.notes,
            'assigned_to': self.assigned_to,
            'assigned_to_name': self.assignee.full_name if self.assignee else None,
        }


class CallLog(db.Model, TimestampMixin):
    __tablename__ = 'call_logs'
    id = db.Column(db.Integer, primary_key=True)
    call_date = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)
    entity_type = db.Column(LowerCaseString(20), nullable=False)  # customer / lead
    entity_id = db.Column(db.Integer, nullable=False)
    call_type = db.Column(LowerCaseString(20), nullable=False, default='outgoing')
    call_purpose = db.Column(LowerCaseString(30), nullable=False)
    call_status = db.Column(LowerCaseString(30), nullable=False)
    call_duration = db.Column(db.Integer, nullable=False, default=0)  # seconds
    discussion_points = db.Column(db.Text, nullable=True)
    customer_feedback = db.Column(db.Text, nullable=True)
    next_action = db.Column(db.Text, nullable=True)
    call_outcome = db.Column(LowerCaseString(20), nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    recorder = db.relationship('User')

    __table_args__ = (
        db.Index('idx_call_logs_entity', 'entity_type', 'entity_id'),
    )


class FollowUp(db.Model, TimestampMixin):
    __tablename__ = 'follow_ups'
    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(LowerCaseString(20), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    follow_up_date = db.Column(db.Date, nullable=False)
    follow_up_time = db.Column(db.Time, nullable=True)
    priority = db.Column(LowerCaseString(10), nullable=False, default='medium')
    follow_up_type = db.Column(LowerCaseString(10), nullable=False, default='call')
    subject = db.Column(db.String(200), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(LowerCaseString(20), nullable=False, default='pending')
    assigned_to = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)

    assignee = db.relationship('User', foreign_keys=[assigned_to])


# Field staff GPS trail
class UserLocation(db.Model):
    __tablename__ = 'user_locations'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    accuracy = db.Column(db.Float, nullable=True)  # metres
    battery_level = db.Column(db.Integer, nullable=True)  # percent
    recorded_at = db.Column(UTCDateTime(), nullable=False, default=get_utc_now)

    user = db.relationship('User')

    __table_args__ = (
        db.Index('idx_user_locations_user_time', 'user_id', 'recorded_at'),
    )

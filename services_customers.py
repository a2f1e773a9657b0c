"""
Customer master data: create/update with field staff assignment,
shop photos (three slots) and shop location capture.
"""
import logging
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import Customer, CustomerMedia, User
from order_status_constants import CUSTOMER_TYPES, ROLE_FIELD_STAFF, check_choice
from errors import ValidationError
from location_utils import validate_coordinates
from timezone_utils import get_utc_now
from utils import clean_str, safe_int, safe_float, safe_decimal
from utils.image_handler import validate_image, compress_image, save_customer_image, remove_stored_image
from app import db

logger = logging.getLogger(__name__)

MEDIA_SLOTS = (1, 2, 3)

# Optional text fields copied straight from the payload
TEXT_FIELDS = (
    'contact_person', 'email', 'gstin', 'pan_no', 'owner_name',
    'address_line1', 'address_line2', 'address_line3', 'city', 'state', 'pincode',
)


def search_customers(query, q=None, include_inactive=False):
    if not include_inactive:
        query = query.filter(Customer.is_active.is_(True))
    q = clean_str(q)
    if q:
        term = f"%{q}%"
        query = query.filter(or_(
            Customer.customer_code.ilike(term),
            Customer.customer_name.ilike(term),
            Customer.mobile_no.ilike(term),
            Customer.city.ilike(term),
        ))
    return query.order_by(Customer.customer_name.asc()).all()


def _assignees(user_ids):
    ids = {safe_int(uid) for uid in (user_ids or [])}
    ids.discard(None)
    if not ids:
        return []
    users = User.query.filter(User.id.in_(ids)).all()
    if len(users) != len(ids):
        raise ValidationError("One or more assigned users do not exist")
    if any(u.role != ROLE_FIELD_STAFF for u in users):
        raise ValidationError("Customers can only be assigned to field staff")
    return users


def save_customer(data, created_by=None, customer=None):
    """
    Create a customer, or update `customer` in place.
    When 'assigned_user_ids' is present the assignment set is replaced.
    """
    name = clean_str(data.get('customer_name'))
    mobile = clean_str(data.get('mobile_no'))
    if not name:
        raise ValidationError("Customer name is required")
    if not mobile:
        raise ValidationError("Mobile number is required")
    current_type = customer.customer_type if customer is not None else 'retail'
    customer_type = check_choice(data.get('customer_type'), CUSTOMER_TYPES, "customer_type", default=current_type)
    assignees = _assignees(data.get('assigned_user_ids')) if 'assigned_user_ids' in data else None

    if customer is None:
        code = clean_str(data.get('customer_code'))
        if not code:
            raise ValidationError("Customer code is required")
        if Customer.query.filter_by(customer_code=code).first():
            raise ValidationError(f"Customer code '{code}' already exists")
        customer = Customer(customer_code=code, created_by=created_by)
        db.session.add(customer)

    customer.customer_name = name
    customer.mobile_no = mobile
    customer.customer_type = customer_type
    for field in TEXT_FIELDS:
        if field in data:
            setattr(customer, field, clean_str(data.get(field)))

    if 'credit_limit' in data:
        credit_limit = safe_float(data.get('credit_limit'), 0.0)
        if credit_limit < 0:
            raise ValidationError("Credit limit cannot be negative")
        customer.credit_limit = safe_decimal(credit_limit)
    elif customer.credit_limit is None:
        customer.credit_limit = 0
    if 'credit_days' in data:
        credit_days = safe_int(data.get('credit_days'), 0)
        if credit_days < 0:
            raise ValidationError("Credit days cannot be negative")
        customer.credit_days = credit_days
    elif customer.credit_days is None:
        customer.credit_days = 0

    if assignees is not None:
        customer.assigned_users = assignees

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Customer code '{customer.customer_code}' already exists")
    return customer


def capture_location(customer, latitude, longitude, accuracy=None):
    """Store a single best-effort position fix on the customer"""
    lat, lng, acc = validate_coordinates(latitude, longitude, accuracy)
    customer.latitude = lat
    customer.longitude = lng
    customer.location_accuracy = acc
    customer.location_captured_at = get_utc_now()
    db.session.commit()
    logger.info(f"Location captured for customer {customer.customer_code} (accuracy {acc})")
    return customer


def store_customer_photo(customer, image_order, data, uploaded_by=None):
    """
    Validate, compress and store a shop photo in one of the three slots.
    An existing photo in the slot is replaced (row and file).
    """
    slot = safe_int(image_order)
    if slot not in MEDIA_SLOTS:
        raise ValidationError("Image slot must be 1, 2 or 3")

    config = current_app.config
    validate_image(data, config['IMAGE_MAX_UPLOAD_BYTES'])
    jpeg = compress_image(data, config['IMAGE_TARGET_BYTES'])

    upload_folder = config['UPLOAD_FOLDER']
    relative_path = save_customer_image(upload_folder, customer.id, slot, jpeg)

    old = CustomerMedia.query.filter_by(customer_id=customer.id, image_order=slot).first()
    old_path = old.file_path if old else None
    if old is not None:
        db.session.delete(old)
        db.session.flush()

    media = CustomerMedia(
        customer_id=customer.id,
        image_order=slot,
        file_path=relative_path,
        size_bytes=len(jpeg),
        uploaded_by=uploaded_by,
    )
    db.session.add(media)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        remove_stored_image(upload_folder, relative_path)
        raise ValidationError("Image slot was updated by someone else, please retry")

    if old_path:
        remove_stored_image(upload_folder, old_path)
    return media


def delete_customer_photo(customer, image_order):
    media = CustomerMedia.query.filter_by(customer_id=customer.id, image_order=safe_int(image_order)).first()
    if media is None:
        return False
    path = media.file_path
    db.session.delete(media)
    db.session.commit()
    remove_stored_image(current_app.config['UPLOAD_FOLDER'], path)
    return True

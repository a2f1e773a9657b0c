# Make utils directory a Python package
import re
import logging
from sqlalchemy.exc import SQLAlchemyError
from order_status_constants import ROLES

from utils.helpers import safe_int, safe_float, safe_decimal, safe_date, parse_date_field, truthy, clean_str  # noqa: F401

MOBILE_RE = re.compile(r'^\d{10}$')


def create_user(session, mobile_no, password, role, full_name=None, email=None):
    """
    Creates a new user in the database.

    Args:
        session: SQLAlchemy session
        mobile_no: 10-digit mobile number used as the login id
        password: Plain text password (stored hashed)
        role: 'admin', 'sales_manager' or 'field_staff'
        full_name: Display name, defaults to the mobile number

    Returns:
        Tuple (user, message); user is None when creation failed
    """
    # Import here to avoid circular imports
    from models import User

    mobile_no = (mobile_no or '').strip()
    role = (role or '').strip().lower()

    if not MOBILE_RE.match(mobile_no):
        return None, "Mobile number must be exactly 10 digits"
    if role not in ROLES:
        return None, f"Role must be one of: {', '.join(ROLES)}"
    if not password:
        return None, "Password is required"

    if User.query.filter_by(mobile_no=mobile_no).first():
        return None, f"User with mobile number '{mobile_no}' already exists"

    try:
        new_user = User(
            mobile_no=mobile_no,
            full_name=(full_name or '').strip() or mobile_no,
            email=(email or '').strip() or None,
            role=role,
        )
        new_user.set_password(password)

        session.add(new_user)
        session.commit()

        return new_user, f"User '{mobile_no}' created successfully"
    except SQLAlchemyError as e:
        logging.error(f"Error creating user: {str(e)}", exc_info=True)
        session.rollback()
        return None, "Error creating user"

"""
Test configuration and fixtures for pytest tests.
Provides isolated test environment with in-memory SQLite database.
"""

import os
import tempfile
from datetime import date

import pytest

# The app reads its configuration at import time
os.environ['SESSION_SECRET'] = 'test-secret-key-for-testing'
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['UPLOAD_FOLDER'] = tempfile.mkdtemp(prefix='fieldsales-test-')
os.environ.pop('ENABLE_BACKGROUND_JOBS', None)
os.environ.pop('PRODUCTION', None)

from app import app as flask_app, db  # noqa: E402
import main  # noqa: E402,F401  registers the blueprints

PASSWORD = 'test_password'


@pytest.fixture(scope='function')
def app():
    """Fresh schema for every test."""
    flask_app.config['TESTING'] = True
    flask_app.config['CUSTOMER_TYPE_PRICE_ALIASES'] = {}

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()
        db.create_all()

    yield flask_app

    with flask_app.app_context():
        db.session.remove()


@pytest.fixture(scope='function')
def client(app):
    """Create a test client for the Flask app."""
    return app.test_client()


@pytest.fixture(scope='function')
def users(app):
    """One user per role plus a second field staff member; returns their ids."""
    from models import User

    with app.app_context():
        created = {}
        for key, mobile, role, name in [
            ('admin', '9000000001', 'admin', 'Test Admin'),
            ('manager', '9000000002', 'sales_manager', 'Test Manager'),
            ('staff', '9000000003', 'field_staff', 'Test Staff'),
            ('staff2', '9000000004', 'field_staff', 'Other Staff'),
        ]:
            user = User(mobile_no=mobile, full_name=name, role=role)
            user.set_password(PASSWORD)
            db.session.add(user)
            created[key] = user
        db.session.commit()
        return {key: user.id for key, user in created.items()}


def _bearer(app, user_id):
    from models import User, AuthToken

    with app.app_context():
        user = db.session.get(User, user_id)
        _, raw_token = AuthToken.issue(db.session, user, 12)
        db.session.commit()
    return {'Authorization': f'Bearer {raw_token}'}


@pytest.fixture(scope='function')
def admin_headers(app, users):
    return _bearer(app, users['admin'])


@pytest.fixture(scope='function')
def manager_headers(app, users):
    return _bearer(app, users['manager'])


@pytest.fixture(scope='function')
def staff_headers(app, users):
    return _bearer(app, users['staff'])


@pytest.fixture(scope='function')
def staff2_headers(app, users):
    return _bearer(app, users['staff2'])


@pytest.fixture(scope='function')
def sample(app, users):
    """
    Customers, products, prices and a route.

    - retail customer assigned to staff, wholesale and distributor customers unassigned
    - product P1 (GST 18) priced 100 / 10% for retail and 90 / 0% for distributor
    - product P2 (GST 5) priced 50 / 0% for retail
    """
    from models import User, Customer, Product, ProductPrice, Route

    with app.app_context():
        staff = db.session.get(User, users['staff'])

        retail = Customer(customer_code='C001', customer_name='Sharma Stores', mobile_no='9811111111',
                          customer_type='retail', city='Pune', created_by=users['admin'])
        retail.assigned_users = [staff]
        wholesale = Customer(customer_code='C002', customer_name='Gupta Traders', mobile_no='9822222222',
                             customer_type='wholesale', city='Pune')
        distributor = Customer(customer_code='C003', customer_name='Metro Distributors', mobile_no='9833333333',
                               customer_type='distributor', city='Mumbai')

        p1 = Product(product_code='P1', product_name='Basmati Rice 5kg', gst_rate=18)
        p2 = Product(product_code='P2', product_name='Sunflower Oil 1L', gst_rate=5)
        db.session.add_all([retail, wholesale, distributor, p1, p2])
        db.session.flush()

        db.session.add_all([
            ProductPrice(product_id=p1.id, customer_type='retail', price=100, discount_percentage=10,
                         effective_from=date(2024, 1, 1)),
            ProductPrice(product_id=p1.id, customer_type='distributor', price=90, discount_percentage=0,
                         effective_from=date(2024, 1, 1)),
            ProductPrice(product_id=p2.id, customer_type='retail', price=50, discount_percentage=0,
                         effective_from=date(2024, 1, 1)),
        ])

        route = Route(route_code='R1', route_name='Pune Central')
        db.session.add(route)
        db.session.commit()

        return {
            'retail': retail.id,
            'wholesale': wholesale.id,
            'distributor': distributor.id,
            'p1': p1.id,
            'p2': p2.id,
            'route': route.id,
        }

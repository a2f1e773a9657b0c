"""
Tests for customers, products, price lists and the delete guards.
"""

import pytest

from app import db


class TestCustomers:
    """Customer master and visibility."""

    def test_create_with_assignment(self, client, manager_headers, staff2_headers, users):
        """Assigned field staff see the new customer."""
        response = client.post('/api/customers', headers=manager_headers, json={
            'customer_code': 'C500', 'customer_name': 'Patil Kirana', 'mobile_no': '9844444444',
            'customer_type': 'Wholesale', 'credit_limit': 25000, 'assigned_user_ids': [users['staff2']],
        })
        assert response.status_code == 201
        data = response.get_json()
        assert data['customer_type'] == 'wholesale'
        assert data['assigned_users'] == [{'id': users['staff2'], 'full_name': 'Other Staff'}]

        listed = client.get('/api/customers', headers=staff2_headers).get_json()
        assert [c['customer_code'] for c in listed] == ['C500']

    @pytest.mark.parametrize("payload, message", [
        ({'customer_name': 'X', 'mobile_no': '9800000000'}, "Customer code is required"),
        ({'customer_code': 'C9', 'mobile_no': '9800000000'}, "Customer name is required"),
        ({'customer_code': 'C001', 'customer_name': 'X', 'mobile_no': '9800000000'}, "already exists"),
        ({'customer_code': 'C9', 'customer_name': 'X', 'mobile_no': '98', 'customer_type': 'vip'}, "customer_type"),
        ({'customer_code': 'C9', 'customer_name': 'X', 'mobile_no': '98', 'credit_limit': -1}, "negative"),
    ])
    def test_validation(self, client, manager_headers, sample, payload, message):
        """Bad customer payloads are rejected with a message."""
        response = client.post('/api/customers', headers=manager_headers, json=payload)
        assert response.status_code == 400
        assert message in response.get_json()['error']

    def test_assign_only_field_staff(self, client, manager_headers, users):
        """Managers cannot be assigned customers."""
        response = client.post('/api/customers', headers=manager_headers, json={
            'customer_code': 'C501', 'customer_name': 'Shop', 'mobile_no': '9800000000',
            'assigned_user_ids': [users['manager']],
        })
        assert response.status_code == 400

    def test_staff_visibility(self, client, staff_headers, staff2_headers, sample):
        """Staff only see and open their own customers."""
        assert [c['customer_code'] for c in client.get('/api/customers', headers=staff_headers).get_json()] == ['C001']
        assert client.get(f"/api/customers/{sample['retail']}", headers=staff2_headers).status_code == 404
        assert client.post('/api/customers', headers=staff_headers, json={}).status_code == 403

    def test_search_and_deactivate(self, client, manager_headers, sample):
        """Deactivated customers drop out of the default list."""
        found = client.get('/api/customers?q=gupta', headers=manager_headers).get_json()
        assert [c['customer_code'] for c in found] == ['C002']

        client.post(f"/api/customers/{sample['wholesale']}/deactivate", headers=manager_headers,
                    json={'reason': 'Shop closed'})
        active = client.get('/api/customers', headers=manager_headers).get_json()
        assert 'C002' not in [c['customer_code'] for c in active]
        everything = client.get('/api/customers?include_inactive=1', headers=manager_headers).get_json()
        assert 'C002' in [c['customer_code'] for c in everything]

    def test_update_keeps_type(self, client, manager_headers, sample):
        """An update without customer_type keeps the stored one."""
        response = client.put(f"/api/customers/{sample['distributor']}", headers=manager_headers,
                              json={'customer_name': 'Metro Distributors Pvt Ltd', 'mobile_no': '9833333333'})
        assert response.status_code == 200
        assert response.get_json()['customer_type'] == 'distributor'


class TestProducts:
    """Product catalogue."""

    def test_create_and_update(self, client, manager_headers, sample):
        """Codes are unique; unit defaults to pcs."""
        response = client.post('/api/products', headers=manager_headers,
                               json={'product_code': 'P9', 'product_name': 'Salt 1kg', 'gst_rate': 0})
        assert response.status_code == 201
        product = response.get_json()
        assert product['unit_of_measure'] == 'pcs'

        dup = client.post('/api/products', headers=manager_headers,
                          json={'product_code': 'P9', 'product_name': 'Salt 1kg'})
        assert dup.status_code == 400

        updated = client.put(f"/api/products/{product['id']}", headers=manager_headers,
                             json={'product_name': 'Iodised Salt 1kg', 'gst_rate': 5, 'is_active': False})
        assert updated.get_json()['product_name'] == 'Iodised Salt 1kg'
        names = [p['product_code'] for p in client.get('/api/products', headers=manager_headers).get_json()]
        assert 'P9' not in names

    def test_negative_gst(self, client, manager_headers):
        """GST rate cannot be negative."""
        response = client.post('/api/products', headers=manager_headers,
                               json={'product_code': 'P9', 'product_name': 'Salt', 'gst_rate': -5})
        assert response.status_code == 400

    def test_staff_read_only(self, client, staff_headers, sample):
        """Field staff can list but not edit products."""
        assert client.get('/api/products', headers=staff_headers).status_code == 200
        assert client.post('/api/products', headers=staff_headers,
                           json={'product_code': 'P9', 'product_name': 'Salt'}).status_code == 403


class TestPrices:
    """Price list entries."""

    def test_create_and_deactivate(self, client, manager_headers, sample):
        """A deactivated entry is hidden unless asked for."""
        response = client.post('/api/prices', headers=manager_headers, json={
            'product_id': sample['p2'], 'customer_type': 'dealer', 'price': 47.5,
            'discount_percentage': 1, 'effective_from': '2025-01-01',
        })
        assert response.status_code == 201
        entry = response.get_json()

        client.post(f"/api/prices/{entry['id']}/deactivate", headers=manager_headers)
        active = client.get(f"/api/prices?product_id={sample['p2']}", headers=manager_headers).get_json()
        assert [e['customer_type'] for e in active] == ['retail']
        every = client.get(f"/api/prices?product_id={sample['p2']}&include_inactive=1",
                           headers=manager_headers).get_json()
        assert len(every) == 2

    @pytest.mark.parametrize("payload", [
        {'customer_type': 'wholesale', 'price': 10},
        {'customer_type': 'retail', 'price': -1},
        {'customer_type': 'retail', 'price': 'free'},
        {'customer_type': 'retail', 'price': 10, 'discount_percentage': 120},
        {'customer_type': 'retail', 'price': 10, 'effective_from': '2025-05-01', 'effective_to': '2025-04-01'},
    ])
    def test_invalid(self, client, manager_headers, sample, payload):
        """Tier, price, discount and dates are validated."""
        response = client.post('/api/prices', headers=manager_headers, json={'product_id': sample['p1'], **payload})
        assert response.status_code == 400

    def test_unknown_product(self, client, manager_headers, sample):
        """Entries must point at a product."""
        response = client.post('/api/prices', headers=manager_headers,
                               json={'product_id': 9999, 'customer_type': 'retail', 'price': 10})
        assert response.status_code == 404


class TestDeleteGuards:
    """Hard deletes of referenced master data are blocked."""

    def test_customer_with_orders(self, app, users, sample):
        """A customer with an order cannot be deleted."""
        from errors import ValidationError
        from models import Customer
        from services_orders import create_order
        with app.app_context():
            create_order(users['staff'], sample['retail'], [{'product_id': sample['p1']}])
            customer = db.session.get(Customer, sample['retail'])
            db.session.delete(customer)
            with pytest.raises(ValidationError, match="Deactivate it instead"):
                db.session.flush()
            db.session.rollback()

    def test_product_with_prices(self, app, sample):
        """A product with price entries cannot be deleted."""
        from errors import ValidationError
        from models import Product
        with app.app_context():
            db.session.delete(db.session.get(Product, sample['p2']))
            with pytest.raises(ValidationError, match="price entries"):
                db.session.flush()
            db.session.rollback()

    def test_unreferenced_product_deletes(self, app, sample):
        """Unused products can still be removed."""
        from models import Product
        with app.app_context():
            spare = Product(product_code='P99', product_name='Spare', gst_rate=0)
            db.session.add(spare)
            db.session.commit()
            db.session.delete(spare)
            db.session.commit()
            assert db.session.get(Product, spare.id) is None

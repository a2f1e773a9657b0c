"""
Tests for mapping customers onto routes and editing the visit order.
"""

import pytest

from app import db


class TestRouteCustomerService:
    """Sequence assignment and edits."""

    def test_sequence_appends(self, app, sample):
        """New mappings get max + 1, starting at 1."""
        from services import add_customer_to_route
        with app.app_context():
            first = add_customer_to_route(sample['route'], sample['retail'])
            second = add_customer_to_route(sample['route'], sample['wholesale'])
            assert (first.visit_sequence, second.visit_sequence) == (1, 2)

    def test_sequence_after_edit_uses_max(self, app, sample):
        """After a manual edit the next customer goes after the highest number."""
        from services import add_customer_to_route, update_visit_sequence
        with app.app_context():
            first = add_customer_to_route(sample['route'], sample['retail'])
            update_visit_sequence(first.id, 7)
            nxt = add_customer_to_route(sample['route'], sample['wholesale'])
            assert nxt.visit_sequence == 8

    def test_duplicate_mapping_rejected(self, app, sample):
        """A customer appears at most once per route."""
        from errors import ValidationError
        from services import add_customer_to_route
        with app.app_context():
            add_customer_to_route(sample['route'], sample['retail'])
            with pytest.raises(ValidationError, match="already mapped"):
                add_customer_to_route(sample['route'], sample['retail'])

    def test_edit_allows_duplicates(self, app, sample):
        """Sequences are overwritten directly; others are not renumbered."""
        from services import add_customer_to_route, update_visit_sequence, list_route_customers
        with app.app_context():
            a = add_customer_to_route(sample['route'], sample['retail'])
            b = add_customer_to_route(sample['route'], sample['wholesale'])
            update_visit_sequence(b.id, 1)
            ordered = list_route_customers(sample['route'])
            assert [m.visit_sequence for m in ordered] == [1, 1]
            # Ties fall back to id order
            assert [m.id for m in ordered] == [a.id, b.id]

    @pytest.mark.parametrize("bad", [0, -3, "abc", None, 1.5])
    def test_invalid_sequence_rejected(self, app, sample, bad):
        """Sequences must be whole numbers of at least 1."""
        from errors import ValidationError
        from services import add_customer_to_route, update_visit_sequence
        with app.app_context():
            mapping = add_customer_to_route(sample['route'], sample['retail'])
            with pytest.raises(ValidationError):
                update_visit_sequence(mapping.id, bad)

    def test_available_customers(self, app, sample):
        """Available customers exclude mapped and inactive ones."""
        from models import Customer
        from services import add_customer_to_route, available_customers
        with app.app_context():
            add_customer_to_route(sample['route'], sample['retail'])
            db.session.get(Customer, sample['distributor']).disable("closed")
            db.session.commit()
            codes = [c.customer_code for c in available_customers(sample['route'])]
        assert codes == ['C002']

    def test_delete_route_cascades(self, app, users, sample):
        """Deleting a route removes its mappings and beat plans."""
        from models import RouteCustomer, BeatPlan
        from services import add_customer_to_route, save_beat_plan, delete_route
        with app.app_context():
            add_customer_to_route(sample['route'], sample['retail'])
            save_beat_plan(users['staff'], sample['route'], ['monday'])
            delete_route(sample['route'])
            assert RouteCustomer.query.count() == 0
            assert BeatPlan.query.count() == 0


class TestRouteCustomerApi:
    """HTTP endpoints."""

    def test_add_ignores_requested_position(self, client, manager_headers, sample):
        """The server picks the sequence even if the client sends one."""
        response = client.post(f"/api/routes/{sample['route']}/customers", headers=manager_headers,
                               json={'customer_id': sample['retail'], 'visit_sequence': 42})
        assert response.status_code == 201
        assert response.get_json()['visit_sequence'] == 1

    def test_patch_and_delete(self, client, manager_headers, sample):
        """Edit the sequence, then remove the mapping."""
        mapping = client.post(f"/api/routes/{sample['route']}/customers", headers=manager_headers,
                              json={'customer_id': sample['retail']}).get_json()

        patched = client.patch(f"/api/route-customers/{mapping['id']}", headers=manager_headers,
                               json={'visit_sequence': 5})
        assert patched.get_json()['visit_sequence'] == 5

        bad = client.patch(f"/api/route-customers/{mapping['id']}", headers=manager_headers,
                           json={'visit_sequence': 0})
        assert bad.status_code == 400

        assert client.delete(f"/api/route-customers/{mapping['id']}", headers=manager_headers).status_code == 200
        listed = client.get(f"/api/routes/{sample['route']}/customers", headers=manager_headers).get_json()
        assert listed == []

    def test_routes_list_counts(self, client, manager_headers, sample):
        """Route list carries the number of mapped customers."""
        client.post(f"/api/routes/{sample['route']}/customers", headers=manager_headers,
                    json={'customer_id': sample['retail']})
        routes = client.get('/api/routes', headers=manager_headers).get_json()
        assert routes[0]['customer_count'] == 1

    def test_unknown_route_404(self, client, manager_headers, sample):
        """Missing route is a 404."""
        response = client.get('/api/routes/9999/customers', headers=manager_headers)
        assert response.status_code == 404

    def test_field_staff_forbidden(self, client, staff_headers, sample):
        """Route maintenance is manager only."""
        response = client.post(f"/api/routes/{sample['route']}/customers", headers=staff_headers,
                               json={'customer_id': sample['retail']})
        assert response.status_code == 403

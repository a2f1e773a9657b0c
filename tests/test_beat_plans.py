"""
Tests for beat plans: validation, the one-plan-per-route rule and the day plan.
"""

from datetime import date

import pytest

from app import db

DUPLICATE_MSG = "This route is already assigned to this user. Please edit the existing assignment."

# 2025-06-02 is a Monday
MONDAY = date(2025, 6, 2)
TUESDAY = date(2025, 6, 3)


class TestSaveBeatPlan:
    """Service-level rules."""

    def test_create(self, app, users, sample):
        """A plan stores the selected days."""
        from services import save_beat_plan
        with app.app_context():
            plan = save_beat_plan(users['staff'], sample['route'], ['monday', 'thursday'], assigned_by=users['manager'])
            assert plan.days == ['monday', 'thursday']
            assert plan.day_monday and plan.day_thursday and not plan.day_friday

    def test_zero_days_rejected_before_write(self, app, users, sample):
        """No day selected: rejected and nothing stored."""
        from errors import ValidationError
        from models import BeatPlan
        from services import save_beat_plan
        with app.app_context():
            with pytest.raises(ValidationError, match="at least one day"):
                save_beat_plan(users['staff'], sample['route'], {'monday': False})
            assert BeatPlan.query.count() == 0

    def test_route_required(self, app, users):
        """A route must be chosen."""
        from errors import ValidationError
        from services import save_beat_plan
        with app.app_context():
            with pytest.raises(ValidationError, match="select a route"):
                save_beat_plan(users['staff'], None, ['monday'])

    def test_only_field_staff(self, app, users, sample):
        """Managers cannot be given beat plans."""
        from errors import ValidationError
        from services import save_beat_plan
        with app.app_context():
            with pytest.raises(ValidationError, match="field staff"):
                save_beat_plan(users['manager'], sample['route'], ['monday'])

    def test_duplicate_route_rejected(self, app, users, sample):
        """Same user and route twice is a conflict, even when the first plan is inactive."""
        from errors import ValidationError
        from services import save_beat_plan
        with app.app_context():
            save_beat_plan(users['staff'], sample['route'], ['monday'], is_active=False)
            with pytest.raises(ValidationError) as exc_info:
                save_beat_plan(users['staff'], sample['route'], ['friday'])
            assert str(exc_info.value) == DUPLICATE_MSG

    def test_same_route_other_user_allowed(self, app, users, sample):
        """Two staff members may share a route."""
        from models import BeatPlan
        from services import save_beat_plan
        with app.app_context():
            save_beat_plan(users['staff'], sample['route'], ['monday'])
            save_beat_plan(users['staff2'], sample['route'], ['monday'])
            assert BeatPlan.query.count() == 2

    def test_edit_keeps_own_route(self, app, users, sample):
        """Editing a plan does not conflict with itself; days are overwritten."""
        from services import save_beat_plan
        with app.app_context():
            plan = save_beat_plan(users['staff'], sample['route'], ['monday'])
            updated = save_beat_plan(users['staff'], sample['route'], {'day_tuesday': True}, plan_id=plan.id)
            assert updated.id == plan.id
            assert updated.days == ['tuesday']

    def test_unknown_day_rejected(self, app, users, sample):
        """Only the seven weekday names are accepted."""
        from errors import ValidationError
        from services import save_beat_plan
        with app.app_context():
            with pytest.raises(ValidationError, match="Unknown day"):
                save_beat_plan(users['staff'], sample['route'], ['funday'])


class TestRoutesForDay:
    """The day plan for a field staff member."""

    def _setup(self, users, sample):
        from models import Route
        from services import save_beat_plan, add_customer_to_route
        second = Route(route_code='R2', route_name='Aundh')
        db.session.add(second)
        db.session.commit()
        save_beat_plan(users['staff'], sample['route'], ['monday', 'wednesday'])
        save_beat_plan(users['staff'], second.id, ['tuesday'])
        add_customer_to_route(sample['route'], sample['retail'])
        add_customer_to_route(sample['route'], sample['distributor'])
        return second

    def test_monday(self, app, users, sample):
        """Only routes flagged for the weekday are returned, customers in visit order."""
        from services import routes_for_day
        with app.app_context():
            self._setup(users, sample)
            plan = routes_for_day(users['staff'], MONDAY)
        assert plan['weekday'] == 'monday'
        assert [r['route_code'] for r in plan['routes']] == ['R1']
        assert [c['customer_code'] for c in plan['routes'][0]['customers']] == ['C001', 'C003']

    def test_tuesday(self, app, users, sample):
        """A different weekday picks the other route."""
        from services import routes_for_day
        with app.app_context():
            self._setup(users, sample)
            plan = routes_for_day(users['staff'], TUESDAY)
        assert [r['route_code'] for r in plan['routes']] == ['R2']
        assert plan['routes'][0]['customers'] == []

    def test_inactive_plan_skipped(self, app, users, sample):
        """Inactive plans do not appear in the day plan."""
        from models import BeatPlan
        from services import routes_for_day
        with app.app_context():
            self._setup(users, sample)
            BeatPlan.query.update({'is_active': False})
            db.session.commit()
            assert routes_for_day(users['staff'], MONDAY)['routes'] == []


class TestBeatPlanApi:
    """HTTP endpoints."""

    def test_manager_creates_and_staff_sees_today(self, client, manager_headers, staff_headers, users, sample):
        """Managers assign; staff read their plan for a date."""
        response = client.post('/api/beat-plans', headers=manager_headers, json={
            'user_id': users['staff'], 'route_id': sample['route'], 'days': ['monday'],
        })
        assert response.status_code == 201

        today = client.get('/api/beat-plans/today?date=2025-06-02', headers=staff_headers)
        assert today.status_code == 200
        assert [r['route_code'] for r in today.get_json()['routes']] == ['R1']

    def test_duplicate_returns_400(self, client, manager_headers, users, sample):
        """The conflict message reaches the client."""
        payload = {'user_id': users['staff'], 'route_id': sample['route'], 'days': ['monday']}
        assert client.post('/api/beat-plans', headers=manager_headers, json=payload).status_code == 201
        response = client.post('/api/beat-plans', headers=manager_headers, json=payload)
        assert response.status_code == 400
        assert response.get_json()['error'] == DUPLICATE_MSG

    def test_staff_cannot_manage(self, client, staff_headers, users, sample):
        """Field staff get 403 on plan maintenance."""
        response = client.post('/api/beat-plans', headers=staff_headers, json={
            'user_id': users['staff'], 'route_id': sample['route'], 'days': ['monday'],
        })
        assert response.status_code == 403

    def test_delete(self, client, manager_headers, users, sample):
        """Deleting removes the plan."""
        created = client.post('/api/beat-plans', headers=manager_headers, json={
            'user_id': users['staff'], 'route_id': sample['route'], 'days': ['friday'],
        }).get_json()
        assert client.delete(f"/api/beat-plans/{created['id']}", headers=manager_headers).status_code == 200
        listed = client.get(f"/api/beat-plans?user_id={users['staff']}", headers=manager_headers).get_json()
        assert listed == []

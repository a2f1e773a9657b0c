"""
Field staff location tracking: staff post position fixes, managers see the latest one per user
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
from sqlalchemy import func
from models import User, UserLocation, as_iso
from order_status_constants import ROLE_FIELD_STAFF
from access_control import manager_required
from location_utils import validate_coordinates
from timezone_utils import get_utc_now
from utils import safe_int
from app import db

logger = logging.getLogger(__name__)

tracking_bp = Blueprint('tracking', __name__, url_prefix='/api/tracking')


@tracking_bp.route('/location', methods=['POST'])
@login_required
def record_location():
    data = request.get_json(silent=True) or {}
    lat, lng, accuracy = validate_coordinates(data.get('latitude'), data.get('longitude'), data.get('accuracy'))

    battery = safe_int(data.get('battery_level'))
    if battery is not None and not 0 <= battery <= 100:
        return jsonify({"error": "Battery level must be between 0 and 100"}), 400

    fix = UserLocation(
        user_id=current_user.id,
        latitude=lat,
        longitude=lng,
        accuracy=accuracy,
        battery_level=battery,
        recorded_at=get_utc_now(),
    )
    db.session.add(fix)
    db.session.commit()
    return jsonify({"id": fix.id, "recorded_at": as_iso(fix.recorded_at)}), 201


@tracking_bp.route('/latest', methods=['GET'])
@manager_required
def latest_locations():
    """Most recent fix of every active field staff user that has reported one"""
    latest = (
        db.session.query(UserLocation.user_id, func.max(UserLocation.recorded_at).label('recorded_at'))
        .group_by(UserLocation.user_id)
        .subquery()
    )
    rows = (
        db.session.query(UserLocation, User)
        .join(latest, (UserLocation.user_id == latest.c.user_id)
              & (UserLocation.recorded_at == latest.c.recorded_at))
        .join(User, User.id == UserLocation.user_id)
        .filter(User.role == ROLE_FIELD_STAFF, User.is_active.is_(True))
        .order_by(User.full_name.asc())
        .all()
    )

    now = get_utc_now()
    seen = set()
    result = []
    for fix, user in rows:
        # Two fixes with the same timestamp: keep one
        if user.id in seen:
            continue
        seen.add(user.id)
        result.append({
            'user_id': user.id,
            'full_name': user.full_name,
            'mobile_no': user.mobile_no,
            'latitude': fix.latitude,
            'longitude': fix.longitude,
            'accuracy': fix.accuracy,
            'battery_level': fix.battery_level,
            'recorded_at': as_iso(fix.recorded_at),
            'seconds_since': int((now - fix.recorded_at).total_seconds()),
        })
    return jsonify(result)

"""
Login / logout for the mobile client (bearer tokens) and browsers (session cookie)
"""
import logging
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from models import User, AuthToken, as_iso
from utils import clean_str
from app import db

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

INVALID_LOGIN_MSG = "Invalid mobile number or password"


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    mobile_no = clean_str(data.get('mobile_no')) or ''
    password = data.get('password') or ''

    user = User.query.filter_by(mobile_no=mobile_no).first()
    if user is None or not user.is_active or not user.check_password(password):
        # Same answer for unknown, inactive and wrong password
        logger.warning(f"Rejected login for mobile number ending {mobile_no[-4:]}")
        return jsonify({"error": INVALID_LOGIN_MSG}), 401

    token, raw_token = AuthToken.issue(db.session, user, current_app.config['TOKEN_TTL_HOURS'])
    db.session.commit()
    login_user(user)

    logger.info(f"User {user.id} logged in")
    return jsonify({
        "token": raw_token,
        "expires_at": as_iso(token.expires_at),
        "user": user.to_dict(),
    })


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        token = AuthToken.find_valid(header[len('Bearer '):].strip())
        if token is not None:
            token.revoke()
            db.session.commit()
    logger.info(f"User {current_user.id} logged out")
    logout_user()
    return jsonify({"success": True})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return jsonify(current_user.to_dict())

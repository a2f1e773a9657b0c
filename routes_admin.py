"""
Admin endpoints: user management and bulk CSV/Excel imports
"""
import logging
from flask import Blueprint, request, jsonify, Response
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError
from models import User
from order_status_constants import ROLE_ADMIN, ROLES
from access_control import admin_required, manager_required
from errors import AccessDenied
from import_handler import generate_template, read_upload, import_rows, SUPPORTED_KINDS
from utils import create_user, clean_str, truthy
from app import db

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__, url_prefix='/api')


# =============================================================================
# USERS
# =============================================================================

@admin_bp.route('/users', methods=['GET'])
@manager_required
def list_users():
    """
    Admins get every user. Managers may only ask for a role list (e.g. the
    field staff picker on beat plans).
    """
    role = clean_str(request.args.get('role'))
    if current_user.role != ROLE_ADMIN and role is None:
        raise AccessDenied("Only admins can list every user")

    query = User.query
    if role:
        if role.lower() not in ROLES:
            return jsonify({"error": f"Role must be one of: {', '.join(ROLES)}"}), 400
        query = query.filter(User.role == role.lower())
    if not truthy(request.args.get('include_inactive')):
        query = query.filter(User.is_active.is_(True))
    users = query.order_by(User.full_name.asc()).all()
    return jsonify([u.to_dict() for u in users])


@admin_bp.route('/users', methods=['POST'])
@admin_required
def add_user():
    data = request.get_json(silent=True) or {}
    user, message = create_user(
        db.session,
        data.get('mobile_no'),
        data.get('password'),
        data.get('role'),
        full_name=data.get('full_name'),
        email=data.get('email'),
    )
    if user is None:
        status = 500 if message == "Error creating user" else 400
        return jsonify({"error": message}), status

    logger.info(f"User {user.id} ({user.role}) created by admin {current_user.id}")
    return jsonify(user.to_dict()), 201


@admin_bp.route('/users/<int:user_id>/deactivate', methods=['POST'])
@admin_required
def deactivate_user(user_id):
    user = db.get_or_404(User, user_id)
    if user.id == current_user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400

    data = request.get_json(silent=True) or {}
    try:
        user.disable(clean_str(data.get('reason')))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deactivating user {user_id}: {str(e)}", exc_info=True)
        return jsonify({"error": "Failed to deactivate user"}), 500

    logger.info(f"User {user.id} deactivated by admin {current_user.id}")
    return jsonify(user.to_dict())


# =============================================================================
# IMPORTS
# =============================================================================

@admin_bp.route('/admin/import/<kind>/template', methods=['GET'])
@manager_required
def import_template(kind):
    """Download a CSV template with the expected header and an example row"""
    if kind not in SUPPORTED_KINDS:
        return jsonify({"error": f"Unknown import type '{kind}'"}), 404
    csv_content = generate_template(kind)
    return Response(
        csv_content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={kind}_template.csv'}
    )


@admin_bp.route('/admin/import/<kind>', methods=['POST'])
@manager_required
def import_file(kind):
    """
    Import customers, products or prices from an uploaded .csv / .xlsx file.
    Pass dry_run=1 (form field or query string) to validate without saving.
    """
    if kind not in SUPPORTED_KINDS:
        return jsonify({"error": f"Unknown import type '{kind}'"}), 404

    upload = request.files.get('file')
    if upload is None or not upload.filename:
        return jsonify({"error": "No file uploaded"}), 400

    dry_run = truthy(request.form.get('dry_run') or request.args.get('dry_run'))
    df = read_upload(upload.filename, upload.read())
    result = import_rows(kind, df, user_id=current_user.id, dry_run=dry_run)

    logger.info(f"User {current_user.id} imported {kind}: "
                f"{result['inserted']} inserted, {len(result['errors'])} errors")
    return jsonify(result)

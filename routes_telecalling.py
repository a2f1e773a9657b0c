"""
Telecalling endpoints: leads, callable entities, call logs, follow-ups and stats
"""
import logging
from flask import Blueprint, request, jsonify
from flask_login import login_required, current_user
import services_telecalling as telecalling

logger = logging.getLogger(__name__)

telecalling_bp = Blueprint('telecalling', __name__, url_prefix='/api')


@telecalling_bp.route('/leads', methods=['GET'])
@login_required
def list_leads():
    leads = telecalling.list_leads(current_user, request.args.get('q'))
    return jsonify([lead.to_dict() for lead in leads])


@telecalling_bp.route('/leads', methods=['POST'])
@login_required
def create_lead():
    lead = telecalling.create_lead(current_user, request.get_json(silent=True) or {})
    logger.info(f"Lead {lead.lead_code} created by user {current_user.id}")
    return jsonify(lead.to_dict()), 201


@telecalling_bp.route('/telecalling/entities', methods=['GET'])
@login_required
def entities():
    return jsonify(telecalling.list_entities(current_user, request.args.get('q')))


@telecalling_bp.route('/telecalling/call-logs', methods=['GET'])
@login_required
def list_call_logs():
    return jsonify(telecalling.list_call_logs(
        current_user,
        entity_type=request.args.get('entity_type'),
        entity_id=request.args.get('entity_id'),
    ))


@telecalling_bp.route('/telecalling/call-logs', methods=['POST'])
@login_required
def create_call_log():
    log = telecalling.create_call_log(current_user, request.get_json(silent=True) or {})
    return jsonify(telecalling.call_log_dict(log)), 201


@telecalling_bp.route('/telecalling/call-logs/<int:log_id>', methods=['PUT'])
@login_required
def update_call_log(log_id):
    log = telecalling.update_call_log(current_user, log_id, request.get_json(silent=True) or {})
    return jsonify(telecalling.call_log_dict(log))


@telecalling_bp.route('/telecalling/follow-ups', methods=['GET'])
@login_required
def list_follow_ups():
    return jsonify(telecalling.list_follow_ups(current_user, request.args.get('status')))


@telecalling_bp.route('/telecalling/follow-ups', methods=['POST'])
@login_required
def create_follow_up():
    follow_up = telecalling.create_follow_up(current_user, request.get_json(silent=True) or {})
    return jsonify(telecalling.follow_up_dict(follow_up)), 201


@telecalling_bp.route('/telecalling/follow-ups/<int:follow_up_id>', methods=['PUT'])
@login_required
def update_follow_up(follow_up_id):
    follow_up = telecalling.update_follow_up(current_user, follow_up_id, request.get_json(silent=True) or {})
    return jsonify(telecalling.follow_up_dict(follow_up))


@telecalling_bp.route('/telecalling/stats', methods=['GET'])
@login_required
def stats():
    return jsonify(telecalling.telecalling_stats(current_user))

"""
Manager reports on orders and collections, as JSON or CSV download
"""
import logging
from flask import Blueprint, request, jsonify, Response
from flask_login import current_user
from access_control import manager_required
from services_reports import order_report, collection_report, order_report_csv, collection_report_csv
from timezone_utils import get_local_today

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__, url_prefix='/api/reports')


def _csv_response(csv_content, name):
    filename = f"{name}_{get_local_today().strftime('%Y%m%d')}.csv"
    return Response(
        csv_content,
        mimetype='text/csv',
        headers={'Content-Disposition': f'attachment; filename={filename}'}
    )


@reports_bp.route('/orders', methods=['GET'])
@manager_required
def orders_report():
    return jsonify(order_report(request.args))


@reports_bp.route('/orders.csv', methods=['GET'])
@manager_required
def orders_report_csv():
    report = order_report(request.args)
    logger.info(f"Order report exported by user {current_user.id}: {len(report['rows'])} rows")
    return _csv_response(order_report_csv(report), 'order_report')


@reports_bp.route('/collections', methods=['GET'])
@manager_required
def collections_report():
    return jsonify(collection_report(request.args))


@reports_bp.route('/collections.csv', methods=['GET'])
@manager_required
def collections_report_csv():
    report = collection_report(request.args)
    logger.info(f"Collection report exported by user {current_user.id}: {len(report['rows'])} rows")
    return _csv_response(collection_report_csv(report), 'collection_report')

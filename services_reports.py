"""
Order and collection reports with filters, totals and CSV rows
"""
import csv
from io import StringIO
from sqlalchemy import or_
from models import SaleOrder, Collection, Customer, as_float
from order_status_constants import PAYMENT_MODES, get_status_label
from utils import clean_str, parse_date_field

ORDER_REPORT_HEADERS = [
    'Order No', 'Order Date', 'Customer Code', 'Customer Name', 'Customer Type', 'Status',
    'Total Amount', 'Discount', 'Tax', 'Net Amount', 'Created By',
]

COLLECTION_REPORT_HEADERS = [
    'Collection No', 'Date', 'Customer Code', 'Customer Name', 'Customer Type', 'Amount',
    'Payment Mode', 'Reference', 'Status', 'Order No', 'Collected By',
]


def _date_range(filters):
    return (
        parse_date_field(filters.get('from_date'), "from_date"),
        parse_date_field(filters.get('to_date'), "to_date"),
    )


def order_report(filters):
    """
    Filters: from_date, to_date, customer_type, status, q (order no / customer name / code).
    Returns {'rows': [...], 'totals': {...}}
    """
    from_date, to_date = _date_range(filters)
    query = SaleOrder.query.join(Customer, Customer.id == SaleOrder.customer_id)
    if from_date:
        query = query.filter(SaleOrder.order_date >= from_date)
    if to_date:
        query = query.filter(SaleOrder.order_date <= to_date)
    if clean_str(filters.get('customer_type')):
        query = query.filter(Customer.customer_type == clean_str(filters.get('customer_type')).lower())
    if clean_str(filters.get('status')):
        query = query.filter(SaleOrder.order_status == clean_str(filters.get('status')).lower())
    q = clean_str(filters.get('q'))
    if q:
        term = f"%{q}%"
        query = query.filter(or_(
            SaleOrder.order_no.ilike(term),
            Customer.customer_name.ilike(term),
            Customer.customer_code.ilike(term),
        ))

    orders = query.order_by(SaleOrder.order_date.desc(), SaleOrder.id.desc()).all()
    rows = []
    totals = {'total_amount': 0.0, 'discount_amount': 0.0, 'tax_amount': 0.0, 'net_amount': 0.0}
    for order in orders:
        row = {
            'order_no': order.order_no,
            'order_date': order.order_date.isoformat(),
            'customer_code': order.customer.customer_code,
            'customer_name': order.customer.customer_name,
            'customer_type': order.customer.customer_type,
            'status': order.order_status,
            'total_amount': as_float(order.total_amount),
            'discount_amount': as_float(order.discount_amount),
            'tax_amount': as_float(order.tax_amount),
            'net_amount': as_float(order.net_amount),
            'created_by': order.creator.full_name if order.creator else '',
        }
        for key in totals:
            totals[key] += row[key]
        rows.append(row)
    totals = {key: round(value, 2) for key, value in totals.items()}
    totals['order_count'] = len(rows)
    return {'rows': rows, 'totals': totals}


def collection_report(filters):
    """
    Filters: from_date, to_date, payment_mode, status, customer_type,
    q (collection no / customer name / code / reference).
    Returns {'rows': [...], 'totals': {'amount', 'count', 'by_payment_mode'}}
    """
    from_date, to_date = _date_range(filters)
    query = Collection.query.join(Customer, Customer.id == Collection.customer_id)
    if from_date:
        query = query.filter(Collection.collection_date >= from_date)
    if to_date:
        query = query.filter(Collection.collection_date <= to_date)
    if clean_str(filters.get('payment_mode')):
        query = query.filter(Collection.payment_mode == clean_str(filters.get('payment_mode')).lower())
    if clean_str(filters.get('status')):
        query = query.filter(Collection.collection_status == clean_str(filters.get('status')).lower())
    if clean_str(filters.get('customer_type')):
        query = query.filter(Customer.customer_type == clean_str(filters.get('customer_type')).lower())
    q = clean_str(filters.get('q'))
    if q:
        term = f"%{q}%"
        query = query.filter(or_(
            Collection.collection_no.ilike(term),
            Collection.payment_reference.ilike(term),
            Customer.customer_name.ilike(term),
            Customer.customer_code.ilike(term),
        ))

    collections = query.order_by(Collection.collection_date.desc(), Collection.id.desc()).all()
    by_mode = {mode: 0.0 for mode in PAYMENT_MODES}
    total = 0.0
    rows = []
    for col in collections:
        amount = as_float(col.amount)
        total += amount
        by_mode[col.payment_mode] = by_mode.get(col.payment_mode, 0.0) + amount
        rows.append({
            'collection_no': col.collection_no,
            'collection_date': col.collection_date.isoformat(),
            'customer_code': col.customer.customer_code,
            'customer_name': col.customer.customer_name,
            'customer_type': col.customer.customer_type,
            'amount': amount,
            'payment_mode': col.payment_mode,
            'payment_reference': col.payment_reference or '',
            'status': col.collection_status,
            'order_no': col.order.order_no if col.order else '',
            'collected_by': col.collector.full_name if col.collector else '',
        })
    return {
        'rows': rows,
        'totals': {
            'amount': round(total, 2),
            'count': len(rows),
            'by_payment_mode': {mode: round(value, 2) for mode, value in by_mode.items()},
        },
    }


def order_report_csv(report):
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(ORDER_REPORT_HEADERS)
    for r in report['rows']:
        writer.writerow([
            r['order_no'], r['order_date'], r['customer_code'], r['customer_name'], r['customer_type'],
            get_status_label(r['status']),
            f"{r['total_amount']:.2f}", f"{r['discount_amount']:.2f}", f"{r['tax_amount']:.2f}",
            f"{r['net_amount']:.2f}", r['created_by'],
        ])
    csv_content = output.getvalue()
    output.close()
    return csv_content


def collection_report_csv(report):
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(COLLECTION_REPORT_HEADERS)
    for r in report['rows']:
        writer.writerow([
            r['collection_no'], r['collection_date'], r['customer_code'], r['customer_name'],
            r['customer_type'], f"{r['amount']:.2f}", r['payment_mode'].upper(), r['payment_reference'],
            r['status'], r['order_no'], r['collected_by'],
        ])
    csv_content = output.getvalue()
    output.close()
    return csv_content

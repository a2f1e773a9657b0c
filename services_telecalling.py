"""
Telecalling CRM: leads, call logs and follow-ups against customers or leads.
Field staff work with their own records; managers see everyone's.
"""
import logging
from datetime import datetime, time as dtime
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from models import Customer, Lead, CallLog, FollowUp, User, as_iso
from order_status_constants import (
    ENTITY_TYPES, CALL_TYPES, CALL_PURPOSES, CALL_STATUSES, CALL_OUTCOMES,
    FOLLOW_UP_PRIORITIES, FOLLOW_UP_TYPES, FOLLOW_UP_STATUSES, LEAD_STATUSES, check_choice,
)
from access_control import (
    visible_customers, visible_leads, visible_call_logs, visible_follow_ups, is_manager,
)
from errors import ValidationError, NotFoundError
from timezone_utils import get_utc_now, get_local_today, local_day_bounds
from utils import clean_str, safe_int, safe_float, safe_decimal, parse_date_field
from app import db

logger = logging.getLogger(__name__)


# =============================================================================
# ENTITIES (customers + leads)
# =============================================================================

def list_entities(user, q=None):
    """Customers and leads the user may call, as one list"""
    q = clean_str(q)
    customers = visible_customers(user).filter(Customer.is_active.is_(True))
    leads = visible_leads(user)
    if q:
        term = f"%{q}%"
        customers = customers.filter(or_(Customer.customer_name.ilike(term), Customer.customer_code.ilike(term),
                                         Customer.mobile_no.ilike(term)))
        leads = leads.filter(or_(Lead.company_name.ilike(term), Lead.lead_code.ilike(term),
                                 Lead.mobile_no.ilike(term)))

    entities = [
        {'entity_type': 'customer', 'id': c.id, 'code': c.customer_code, 'name': c.customer_name,
         'phone': c.mobile_no}
        for c in customers.order_by(Customer.customer_name.asc()).all()
    ]
    entities.extend(
        {'entity_type': 'lead', 'id': lead.id, 'code': lead.lead_code, 'name': lead.company_name,
         'phone': lead.mobile_no}
        for lead in leads.order_by(Lead.company_name.asc()).all()
    )
    return entities


def _check_entity(user, entity_type, entity_id):
    entity_type = check_choice(entity_type, ENTITY_TYPES, "entity_type")
    key = safe_int(entity_id)
    if key is None:
        raise ValidationError("entity_id is required")
    if entity_type == 'customer':
        found = visible_customers(user).filter(Customer.id == key).first()
    else:
        found = visible_leads(user).filter(Lead.id == key).first()
    if found is None:
        raise ValidationError(f"{entity_type.capitalize()} {entity_id} not found")
    return entity_type, key


def _entity_names(rows):
    """{(entity_type, id): display name} for a batch of call logs / follow-ups"""
    customer_ids = {r.entity_id for r in rows if r.entity_type == 'customer'}
    lead_ids = {r.entity_id for r in rows if r.entity_type == 'lead'}
    names = {}
    if customer_ids:
        for c in Customer.query.filter(Customer.id.in_(customer_ids)).all():
            names[('customer', c.id)] = c.customer_name
    if lead_ids:
        for lead in Lead.query.filter(Lead.id.in_(lead_ids)).all():
            names[('lead', lead.id)] = lead.company_name
    return names


# =============================================================================
# LEADS
# =============================================================================

def list_leads(user, q=None):
    query = visible_leads(user)
    q = clean_str(q)
    if q:
        term = f"%{q}%"
        query = query.filter(or_(Lead.company_name.ilike(term), Lead.lead_code.ilike(term),
                                 Lead.contact_person.ilike(term)))
    return query.order_by(Lead.created_at.desc()).all()


def create_lead(user, data):
    code = clean_str(data.get('lead_code'))
    company = clean_str(data.get('company_name'))
    if not code or not company:
        raise ValidationError("Lead code and company name are required")

    estimated = safe_float(data.get('estimated_value'))
    if estimated is not None and estimated < 0:
        raise ValidationError("Estimated value cannot be negative")

    assigned_to = safe_int(data.get('assigned_to'))
    if not is_manager(user) or assigned_to is None:
        # Field staff can only create leads for themselves
        assigned_to = user.id
    elif db.session.get(User, assigned_to) is None:
        raise ValidationError(f"User {assigned_to} not found")

    lead = Lead(
        lead_code=code,
        company_name=company,
        contact_person=clean_str(data.get('contact_person')),
        mobile_no=clean_str(data.get('mobile_no')),
        email=clean_str(data.get('email')),
        lead_status=check_choice(data.get('lead_status'), LEAD_STATUSES, "lead_status", default='new'),
        estimated_value=safe_decimal(estimated),
        notes=clean_str(data.get('notes')),
        assigned_to=assigned_to,
        created_by=user.id,
    )
    db.session.add(lead)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Lead code '{code}' already exists")
    return lead


# =============================================================================
# CALL LOGS
# =============================================================================

def _parse_call_date(value):
    text = clean_str(value)
    if text is None:
        return get_utc_now()
    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError("Invalid call_date, expected an ISO 8601 timestamp")


def _apply_call_fields(log, data):
    log.call_type = check_choice(data.get('call_type'), CALL_TYPES, "call_type", default=log.call_type or 'outgoing')
    log.call_purpose = check_choice(data.get('call_purpose'), CALL_PURPOSES, "call_purpose",
                                    default=log.call_purpose or 'follow_up')
    log.call_status = check_choice(data.get('call_status'), CALL_STATUSES, "call_status",
                                   default=log.call_status or 'completed')
    if 'call_outcome' in data:
        outcome = clean_str(data.get('call_outcome'))
        log.call_outcome = check_choice(outcome, CALL_OUTCOMES, "call_outcome") if outcome else None

    duration = safe_int(data.get('call_duration'), log.call_duration or 0)
    if duration < 0:
        raise ValidationError("Call duration cannot be negative")
    log.call_duration = duration

    for field in ('discussion_points', 'customer_feedback', 'next_action'):
        if field in data:
            setattr(log, field, clean_str(data.get(field)))


def create_call_log(user, data):
    entity_type, entity_id = _check_entity(user, data.get('entity_type'), data.get('entity_id'))
    log = CallLog(
        entity_type=entity_type,
        entity_id=entity_id,
        call_date=_parse_call_date(data.get('call_date')),
        recorded_by=user.id,
    )
    _apply_call_fields(log, data)
    db.session.add(log)
    db.session.commit()
    logger.info(f"Call log {log.id} recorded by user {user.id} for {entity_type} {entity_id}")
    return log


def update_call_log(user, log_id, data):
    log = visible_call_logs(user).filter(CallLog.id == safe_int(log_id)).first()
    if log is None:
        raise NotFoundError(f"Call log {log_id} not found")
    if 'call_date' in data:
        log.call_date = _parse_call_date(data.get('call_date'))
    _apply_call_fields(log, data)
    db.session.commit()
    return log


def list_call_logs(user, entity_type=None, entity_id=None):
    query = visible_call_logs(user)
    if entity_type:
        query = query.filter(CallLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(CallLog.entity_id == safe_int(entity_id))
    rows = query.order_by(CallLog.call_date.desc()).all()
    names = _entity_names(rows)
    return [call_log_dict(r, names) for r in rows]


def call_log_dict(log, names=None):
    names = names if names is not None else _entity_names([log])
    return {
        'id': log.id,
        'call_date': as_iso(log.call_date),
        'entity_type': log.entity_type,
        'entity_id': log.entity_id,
        'entity_name': names.get((log.entity_type, log.entity_id)),
        'call_type': log.call_type,
        'call_purpose': log.call_purpose,
        'call_status': log.call_status,
        'call_duration': log.call_duration,
        'discussion_points': log.discussion_points,
        'customer_feedback': log.customer_feedback,
        'next_action': log.next_action,
        'call_outcome': log.call_outcome,
        'recorded_by': log.recorder.full_name if log.recorder else None,
    }


# =============================================================================
# FOLLOW-UPS
# =============================================================================

def _parse_time(value):
    text = clean_str(value)
    if text is None:
        return None
    try:
        return dtime.fromisoformat(text)
    except ValueError:
        raise ValidationError("Invalid follow_up_time, expected HH:MM")


def _apply_follow_up_fields(follow_up, data, user):
    if 'follow_up_date' in data or follow_up.follow_up_date is None:
        follow_up.follow_up_date = parse_date_field(data.get('follow_up_date'), "follow_up_date",
                                                    default=get_local_today())
    if 'follow_up_time' in data:
        follow_up.follow_up_time = _parse_time(data.get('follow_up_time'))
    follow_up.priority = check_choice(data.get('priority'), FOLLOW_UP_PRIORITIES, "priority",
                                      default=follow_up.priority or 'medium')
    follow_up.follow_up_type = check_choice(data.get('follow_up_type'), FOLLOW_UP_TYPES, "follow_up_type",
                                            default=follow_up.follow_up_type or 'call')
    follow_up.status = check_choice(data.get('status'), FOLLOW_UP_STATUSES, "status",
                                    default=follow_up.status or 'pending')
    if 'subject' in data or follow_up.subject is None:
        subject = clean_str(data.get('subject'))
        if not subject:
            raise ValidationError("Subject is required")
        follow_up.subject = subject
    if 'notes' in data:
        follow_up.notes = clean_str(data.get('notes'))
    if 'assigned_to' in data or follow_up.assigned_to is None:
        assignee = safe_int(data.get('assigned_to')) or user.id
        if db.session.get(User, assignee) is None:
            raise ValidationError(f"User {assignee} not found")
        follow_up.assigned_to = assignee


def create_follow_up(user, data):
    entity_type, entity_id = _check_entity(user, data.get('entity_type'), data.get('entity_id'))
    follow_up = FollowUp(entity_type=entity_type, entity_id=entity_id, created_by=user.id)
    _apply_follow_up_fields(follow_up, data, user)
    db.session.add(follow_up)
    db.session.commit()
    return follow_up


def update_follow_up(user, follow_up_id, data):
    follow_up = visible_follow_ups(user).filter(FollowUp.id == safe_int(follow_up_id)).first()
    if follow_up is None:
        raise NotFoundError(f"Follow-up {follow_up_id} not found")
    _apply_follow_up_fields(follow_up, data, user)
    db.session.commit()
    return follow_up


def list_follow_ups(user, status=None):
    query = visible_follow_ups(user)
    if status:
        query = query.filter(FollowUp.status == status)
    rows = query.order_by(FollowUp.follow_up_date.asc(), FollowUp.follow_up_time.asc()).all()
    names = _entity_names(rows)
    return [follow_up_dict(r, names) for r in rows]


def follow_up_dict(follow_up, names=None):
    names = names if names is not None else _entity_names([follow_up])
    return {
        'id': follow_up.id,
        'entity_type': follow_up.entity_type,
        'entity_id': follow_up.entity_id,
        'entity_name': names.get((follow_up.entity_type, follow_up.entity_id)),
        'follow_up_date': as_iso(follow_up.follow_up_date),
        'follow_up_time': follow_up.follow_up_time.strftime('%H:%M') if follow_up.follow_up_time else None,
        'priority': follow_up.priority,
        'follow_up_type': follow_up.follow_up_type,
        'subject': follow_up.subject,
        'notes': follow_up.notes,
        'status': follow_up.status,
        'assigned_to': follow_up.assigned_to,
        'assigned_to_name': follow_up.assignee.full_name if follow_up.assignee else None,
    }


def telecalling_stats(user):
    """Total calls, pending follow-ups and calls logged today (local date)"""
    start, end = local_day_bounds(get_local_today())
    calls = visible_call_logs(user)
    return {
        'total_calls': calls.count(),
        'pending_follow_ups': visible_follow_ups(user).filter(FollowUp.status == 'pending').count(),
        'calls_today': calls.filter(CallLog.call_date >= start, CallLog.call_date < end).count(),
    }

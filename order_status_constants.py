"""
Status and vocabulary constants for the Field Sales system
Defines order statuses, roles, customer/price tiers and the telecalling picklists
"""
from errors import ValidationError

# Order Status Constants
ORDER_STATUSES = {
    'draft': {
        'value': 'draft',
        'label': 'Draft',
        'description': 'Order captured, not yet confirmed with the customer',
        'sort_order': 1
    },
    'confirmed': {
        'value': 'confirmed',
        'label': 'Confirmed',
        'description': 'Customer confirmed the order',
        'sort_order': 2
    },
}

# Statuses a new order may be submitted with
SUBMITTABLE_ORDER_STATUSES = ('draft', 'confirmed')

# Roles
ROLE_ADMIN = 'admin'
ROLE_SALES_MANAGER = 'sales_manager'
ROLE_FIELD_STAFF = 'field_staff'
ROLES = (ROLE_ADMIN, ROLE_SALES_MANAGER, ROLE_FIELD_STAFF)
MANAGER_ROLES = (ROLE_ADMIN, ROLE_SALES_MANAGER)

# Customer records and price lists use different tier names.
# wholesale/dealer are not mapped to each other unless CUSTOMER_TYPE_PRICE_ALIASES says so.
CUSTOMER_TYPES = ('retail', 'wholesale', 'distributor')
PRICE_CUSTOMER_TYPES = ('retail', 'dealer', 'distributor')

# Collections
PAYMENT_MODES = ('cash', 'cheque', 'upi', 'neft', 'card')
COLLECTION_STATUSES = ('pending', 'cleared', 'bounced')

# Telecalling
ENTITY_TYPES = ('customer', 'lead')
CALL_TYPES = ('outgoing', 'incoming')
CALL_PURPOSES = ('follow_up', 'order_confirmation', 'collection_followup', 'complaint', 'enquiry', 'support')
CALL_STATUSES = ('completed', 'no_answer', 'busy', 'callback_requested', 'unreachable')
CALL_OUTCOMES = ('positive', 'neutral', 'negative', 'interested', 'not_interested')
FOLLOW_UP_PRIORITIES = ('low', 'medium', 'high')
FOLLOW_UP_TYPES = ('call', 'visit', 'email', 'demo')
FOLLOW_UP_STATUSES = ('pending', 'completed', 'cancelled', 'rescheduled')
LEAD_STATUSES = ('new', 'contacted', 'qualified', 'converted', 'lost')

# Beat plan days, Monday first to match date.weekday()
WEEKDAYS = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


def get_status_info(status):
    """Get status information by status value"""
    return ORDER_STATUSES.get(status, None)


def get_status_label(status):
    info = get_status_info(status)
    return info['label'] if info else status


def check_choice(value, choices, field, default=None):
    """
    Normalise a picklist value and make sure it is one of `choices`.
    Empty values fall back to `default`; unknown values raise ValidationError naming the field.
    """
    if value is None or str(value).strip() == '':
        if default is None:
            raise ValidationError(f"{field} is required")
        return default
    value = str(value).strip().lower()
    if value not in choices:
        raise ValidationError(f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}")
    return value

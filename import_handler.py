import io
import pandas as pd
import logging
from sqlalchemy.exc import SQLAlchemyError
from models import Customer, Product, ProductPrice
from order_status_constants import CUSTOMER_TYPES, PRICE_CUSTOMER_TYPES
from services_orders import StoreError
from timezone_utils import get_local_today
from utils import clean_str, safe_int, safe_float, safe_decimal, safe_date
from errors import ValidationError
from app import db

logger = logging.getLogger(__name__)

# Column layout and one example row per import kind
TEMPLATES = {
    'customers': {
        'columns': [
            'customer_code', 'customer_name', 'contact_person', 'mobile_no', 'email', 'gstin', 'pan_no',
            'customer_type', 'credit_limit', 'credit_days', 'owner_name', 'address_line1', 'address_line2',
            'address_line3', 'city', 'state', 'pincode',
        ],
        'required': ['customer_code', 'customer_name', 'mobile_no'],
        'example': [
            'CUST001', 'Sharma General Store', 'Ravi Sharma', '9876543210', 'ravi@example.com',
            '27AAPFU0939F1ZV', 'AAPFU0939F', 'retail', '50000', '30', 'Ravi Sharma', 'Shop 4, Main Bazar',
            'Near Bus Stand', '', 'Pune', 'Maharashtra', '411001',
        ],
    },
    'products': {
        'columns': [
            'product_code', 'product_name', 'category', 'subcategory', 'unit_of_measure', 'hsn_code',
            'gst_rate', 'description',
        ],
        'required': ['product_code', 'product_name'],
        'example': ['PROD001', 'Basmati Rice 5kg', 'Grocery', 'Rice', 'bag', '1006', '5', 'Premium long grain'],
    },
    'prices': {
        'columns': ['product_code', 'customer_type', 'price', 'discount_percentage', 'effective_from', 'effective_to'],
        'required': ['product_code', 'customer_type', 'price'],
        'example': ['PROD001', 'retail', '450', '2', '2024-04-01', ''],
    },
}

SUPPORTED_KINDS = tuple(TEMPLATES)


def _check_kind(kind):
    if kind not in TEMPLATES:
        raise ValidationError(f"Unknown import type '{kind}'. Use one of: {', '.join(SUPPORTED_KINDS)}")


def generate_template(kind):
    """CSV text with the header row and one example row"""
    _check_kind(kind)
    layout = TEMPLATES[kind]
    df = pd.DataFrame([layout['example']], columns=layout['columns'])
    return df.to_csv(index=False)


def read_upload(filename, data):
    """
    Load an uploaded .csv or .xlsx into a DataFrame of strings.

    Headers are trimmed and lower-cased. Every data row keeps its position so
    row numbers in error messages match the file (header = row 1): lines with
    more fields than the header are blanked and later skipped like empty rows.
    """
    filename = (filename or "").lower()
    try:
        if filename.endswith(".xlsx"):
            df = pd.read_excel(io.BytesIO(data), dtype=str, engine='openpyxl')
            columns = df.columns
        elif filename.endswith(".csv"):
            text = data.decode('utf-8-sig')
            # The header is read as a data row so an over-long first row
            # can't be taken for an index column
            width = len(pd.read_csv(io.StringIO(text), header=None, nrows=1, dtype=str).columns)
            raw = pd.read_csv(
                io.StringIO(text),
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
                engine='python',
                on_bad_lines=lambda bad_line: [''] * width,
            )
            columns = raw.iloc[0].fillna('')
            df = raw.iloc[1:].reset_index(drop=True)
        else:
            raise ValidationError("Unsupported file. Use .xlsx or .csv")
    except ValidationError:
        raise
    except (ValueError, UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationError(f"Failed to read file: {str(e)}")

    df.columns = [str(c).strip().lower() for c in columns]
    df = df.fillna('')
    logger.info(f"Import file loaded with {len(df)} rows, columns: {df.columns.tolist()}")
    return df


def _missing(row, required):
    return [col for col in required if not clean_str(row.get(col))]


# =============================================================================
# ROW VALIDATION - each returns (model instance, None) or (None, error reason)
# =============================================================================

def _customer_row(row, ctx):
    code = clean_str(row.get('customer_code'))
    if code in ctx['existing']:
        return None, f"Customer code '{code}' already exists"
    if code in ctx['seen']:
        return None, f"Customer code '{code}' appears more than once in the file"

    customer_type = (clean_str(row.get('customer_type')) or 'retail').lower()
    if customer_type not in CUSTOMER_TYPES:
        return None, f"Invalid customer_type '{customer_type}'. Must be one of: {', '.join(CUSTOMER_TYPES)}"

    ctx['seen'].add(code)
    return Customer(
        customer_code=code,
        customer_name=clean_str(row.get('customer_name')),
        contact_person=clean_str(row.get('contact_person')),
        mobile_no=clean_str(row.get('mobile_no')),
        email=clean_str(row.get('email')),
        gstin=clean_str(row.get('gstin')),
        pan_no=clean_str(row.get('pan_no')),
        customer_type=customer_type,
        credit_limit=safe_decimal(safe_float(row.get('credit_limit'), 0.0)),
        credit_days=safe_int(row.get('credit_days'), 0),
        owner_name=clean_str(row.get('owner_name')),
        address_line1=clean_str(row.get('address_line1')),
        address_line2=clean_str(row.get('address_line2')),
        address_line3=clean_str(row.get('address_line3')),
        city=clean_str(row.get('city')),
        state=clean_str(row.get('state')),
        pincode=clean_str(row.get('pincode')),
        created_by=ctx['user_id'],
    ), None


def _product_row(row, ctx):
    code = clean_str(row.get('product_code'))
    if code in ctx['existing']:
        return None, f"Product code '{code}' already exists"
    if code in ctx['seen']:
        return None, f"Product code '{code}' appears more than once in the file"

    gst_rate = safe_float(row.get('gst_rate'), 0.0)
    if gst_rate < 0:
        return None, "gst_rate cannot be negative"

    ctx['seen'].add(code)
    return Product(
        product_code=code,
        product_name=clean_str(row.get('product_name')),
        category=clean_str(row.get('category')),
        subcategory=clean_str(row.get('subcategory')),
        unit_of_measure=clean_str(row.get('unit_of_measure')) or 'pcs',
        hsn_code=clean_str(row.get('hsn_code')),
        gst_rate=safe_decimal(gst_rate),
        description=clean_str(row.get('description')),
    ), None


def _price_row(row, ctx):
    code = clean_str(row.get('product_code'))
    product_id = ctx['products'].get(code)
    if product_id is None:
        return None, f"Product code '{code}' not found"

    customer_type = clean_str(row.get('customer_type')).lower()
    if customer_type not in PRICE_CUSTOMER_TYPES:
        return None, f"Invalid customer_type '{customer_type}'. Must be one of: {', '.join(PRICE_CUSTOMER_TYPES)}"

    price = safe_float(row.get('price'))
    if price is None:
        return None, f"Invalid price '{row.get('price')}'"
    if price < 0:
        return None, "price cannot be negative"

    discount = safe_float(row.get('discount_percentage'), 0.0)
    if not 0 <= discount <= 100:
        return None, "discount_percentage must be between 0 and 100"

    effective_from = get_local_today()
    if clean_str(row.get('effective_from')):
        effective_from = safe_date(row.get('effective_from'))
        if effective_from is None:
            return None, "Invalid effective_from, expected YYYY-MM-DD"
    effective_to = None
    if clean_str(row.get('effective_to')):
        effective_to = safe_date(row.get('effective_to'))
        if effective_to is None:
            return None, "Invalid effective_to, expected YYYY-MM-DD"
        if effective_to < effective_from:
            return None, "effective_to cannot be before effective_from"

    return ProductPrice(
        product_id=product_id,
        customer_type=customer_type,
        price=safe_decimal(price),
        discount_percentage=safe_decimal(discount),
        effective_from=effective_from,
        effective_to=effective_to,
    ), None


ROW_BUILDERS = {
    'customers': _customer_row,
    'products': _product_row,
    'prices': _price_row,
}


def _context(kind, user_id):
    ctx = {'seen': set(), 'user_id': user_id}
    if kind == 'customers':
        ctx['existing'] = {code for (code,) in db.session.query(Customer.customer_code).all()}
    elif kind == 'products':
        ctx['existing'] = {code for (code,) in db.session.query(Product.product_code).all()}
    else:
        ctx['products'] = dict(db.session.query(Product.product_code, Product.id).all())
    return ctx


def import_rows(kind, df, user_id=None, dry_run=False):
    """
    Validate every row and insert the valid ones in a single transaction.

    Blank rows are skipped silently. Each invalid row produces exactly one
    "Row <n>: <reason>" message and is not inserted.

    Returns:
        dict with inserted count, errors list and dry_run flag
    """
    _check_kind(kind)
    layout = TEMPLATES[kind]
    build = ROW_BUILDERS[kind]

    missing_columns = [col for col in layout['required'] if col not in df.columns]
    if missing_columns:
        raise ValidationError(f"Missing required column(s): {', '.join(missing_columns)}")

    ctx = _context(kind, user_id)
    errors = []
    valid = []
    skipped_blank = 0

    for idx, row in enumerate(df.to_dict(orient='records')):
        row_no = idx + 2
        if not any(clean_str(value) for value in row.values()):
            skipped_blank += 1
            continue

        missing = _missing(row, layout['required'])
        if missing:
            errors.append(f"Row {row_no}: Missing required fields ({', '.join(missing)})")
            continue

        record, reason = build(row, ctx)
        if reason:
            errors.append(f"Row {row_no}: {reason}")
            continue
        valid.append(record)

    if not dry_run and valid:
        try:
            db.session.add_all(valid)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"{kind} import failed, nothing inserted: {str(e)}", exc_info=True)
            raise StoreError(f"Failed to import {kind}")

    logger.info(
        f"{kind} import{' (dry run)' if dry_run else ''}: {len(valid)} valid, "
        f"{len(errors)} invalid, {skipped_blank} blank rows"
    )
    return {
        'inserted': 0 if dry_run else len(valid),
        'valid_rows': len(valid),
        'errors': errors,
        'dry_run': dry_run,
    }

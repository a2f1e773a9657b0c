import os
import logging
import atexit
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

class Base(DeclarativeBase):
    pass

# Initialize Flask app
app = Flask(__name__)
app.config['UPLOAD_FOLDER'] = os.environ.get("UPLOAD_FOLDER") or os.path.join(os.getcwd(), 'uploads')
app.secret_key = os.environ.get("SESSION_SECRET")
if not app.secret_key:
    raise RuntimeError("SESSION_SECRET environment variable is required and cannot be empty")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # needed for url_for to generate with https

# Application settings read from the environment
app.config['TOKEN_TTL_HOURS'] = int(os.environ.get("TOKEN_TTL_HOURS", "12"))
app.config['IMAGE_TARGET_BYTES'] = int(os.environ.get("IMAGE_TARGET_BYTES", str(1024 * 1024)))
app.config['IMAGE_MAX_UPLOAD_BYTES'] = int(os.environ.get("IMAGE_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
app.config['MAX_CONTENT_LENGTH'] = app.config['IMAGE_MAX_UPLOAD_BYTES'] + 1024 * 1024  # multipart overhead
# Optional "customer_type=price_tier" pairs, e.g. "wholesale=dealer"
app.config['CUSTOMER_TYPE_PRICE_ALIASES'] = dict(
    pair.split("=", 1) for pair in os.environ.get("CUSTOMER_TYPE_PRICE_ALIASES", "").split(",") if "=" in pair
)

# Database configuration
database_url = os.environ.get("DATABASE_URL")
if database_url:
    # Ensure the URL is in the correct format for PostgreSQL
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://')
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
else:
    # Fallback to SQLite for development
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///fieldsales.db"
    logging.warning("DATABASE_URL not found, using SQLite database")

app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

# Detect if running in production
is_production = os.environ.get("PRODUCTION") == "1"

# Pool sizing only applies to server databases; SQLite uses its own pool
if not app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
        'pool_pre_ping': True,
        "pool_recycle": 300,
        "pool_size": 10 if is_production else 5,
        "max_overflow": 5,
        "pool_timeout": 30,
        "echo": False,
    }

# Initialize the SQLAlchemy extension
db = SQLAlchemy(model_class=Base)
db.init_app(app)

# Sessions for browsers, bearer tokens for the mobile client
login_manager = LoginManager()
login_manager.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    from models import User
    try:
        user = db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None
    if user is None or not user.is_active:
        return None
    return user


@login_manager.request_loader
def load_user_from_request(request):
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    from models import AuthToken
    token = AuthToken.find_valid(header[len('Bearer '):].strip())
    if token is None or not token.user.is_active:
        return None
    return token.user


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Authentication required"}), 401


# Create the upload folder if it doesn't exist
os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

# Database initialization for both development and production
with app.app_context():
    # Import models
    import models  # noqa: F401

    # Register delete guards to prevent data inconsistency
    from delete_guards import register_all_guards
    register_all_guards()

    # Create all tables that don't yet exist
    db.create_all()
    logging.info("Database tables created if they didn't exist")

    from models import Setting
    if Setting.get(db.session, 'system_timezone', None) is None:
        Setting.set(db.session, 'system_timezone', 'Asia/Kolkata')

    # Only seed a login in development
    if not is_production:
        from models import User
        from utils import create_user

        if not User.query.first():
            create_user(db.session, '9999999999', 'admin123', 'admin', full_name='Administrator')
            logging.info("Default admin user created")

    db.session.commit()

# Initialize background scheduler for scheduled tasks
from scheduler import setup_scheduler, stop_scheduler
if setup_scheduler(app):
    # Ensure scheduler stops when app shuts down
    atexit.register(stop_scheduler)
    logging.info("Background scheduler initialized")

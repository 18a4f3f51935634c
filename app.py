import os
import logging
import click
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging
logging.basicConfig(level=logging.DEBUG)

class Base(DeclarativeBase):
    pass

# Initialize Flask app
app = Flask(__name__)
app.secret_key = os.environ.get("SESSION_SECRET")
if not app.secret_key:
    raise RuntimeError("SESSION_SECRET environment variable is required and cannot be empty")
app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

# Database configuration
database_url = os.environ.get("DATABASE_URL")
if database_url:
    # Ensure the URL is in the correct format for PostgreSQL
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://')
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
else:
    # Fallback to SQLite for development
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///intake.db"
    logging.warning("DATABASE_URL not found, using SQLite database")

app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

# Detect if running in production
is_production = os.environ.get("REPLIT_DEPLOYMENT") == "1"

if database_url and database_url.startswith('postgresql'):
    if is_production:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            'pool_pre_ping': True,
            "pool_recycle": 300,
            "pool_size": 10,
            "max_overflow": 5,
            "pool_timeout": 30,
            "connect_args": {
                "connect_timeout": 10,
                "options": "-c statement_timeout=30000 -c lock_timeout=10000"
            }
        }
    else:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            'pool_pre_ping': True,
            "pool_recycle": 300,
            "pool_size": 20,
            "max_overflow": 10,
            "pool_timeout": 30,
        }
else:
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {'pool_pre_ping': True}

# --- Intake / classification tunables (override via environment) ---
app.config["INTAKE_BATCH_MAX_ITEMS"] = int(os.getenv("INTAKE_BATCH_MAX_ITEMS", "20"))
app.config["SKU_ALLOCATOR_MAX_RETRIES"] = int(os.getenv("SKU_ALLOCATOR_MAX_RETRIES", "5"))
app.config["SKU_ALLOCATION_STRATEGY"] = os.getenv("SKU_ALLOCATION_STRATEGY", "counter")
# Empirical cap used to turn a raw bin score into a confidence; recalibrate when keyword weights change
app.config["BIN_SCORE_NORMALIZER"] = float(os.getenv("BIN_SCORE_NORMALIZER", "40"))
app.config["REVIEW_CONFIDENCE_THRESHOLD"] = float(os.getenv("REVIEW_CONFIDENCE_THRESHOLD", "0.65"))
app.config["METADATA_TIMEOUT"] = float(os.getenv("METADATA_TIMEOUT", "8"))

# Initialize the SQLAlchemy extension
db = SQLAlchemy(model_class=Base)
db.init_app(app)


def init_database():
    """Create tables and seed reference data that must exist before intake can run."""
    import models  # noqa: F401
    from models import Setting
    from sku_allocator import seed_sku_counters
    from keyword_import import seed_default_keywords

    db.create_all()
    logging.info("Database tables created if they didn't exist")

    if not Setting.query.filter_by(key='system_timezone').first():
        Setting.set(db.session, 'system_timezone', 'Europe/Athens')

    seed_sku_counters()
    seed_default_keywords()
    db.session.commit()


# Database initialization for both development and production
with app.app_context():
    try:
        init_database()
    except Exception as e:
        logging.error(f"Error during database initialization: {str(e)}")
        logging.exception("Database initialization error details:")

# Register blueprints
from routes_intake_batch import intake_bp  # noqa: E402
from routes_classification import classification_bp  # noqa: E402

app.register_blueprint(intake_bp)
app.register_blueprint(classification_bp)


@app.cli.command("seed-classification")
def seed_classification():
    """Seed SKU counters and the default keyword rule table"""
    init_database()
    print("Classification reference data seeded")


@app.cli.command("import-keywords")
@click.argument("path")
@click.option("--replace", is_flag=True, help="Deactivate existing rules before importing")
def import_keywords(path, replace):
    """Import keyword rules from a CSV or Excel file"""
    from keyword_import import import_keyword_file
    result = import_keyword_file(path, replace=replace)
    print(f"Imported {result['imported']} keyword rules ({result['skipped']} skipped)")
    for error in result['errors']:
        print(f"  {error}")
    if not result['success']:
        raise SystemExit(1)

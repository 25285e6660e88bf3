from flask import Flask, request, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_mail import Mail
from flask_wtf.csrf import CSRFProtect, generate_csrf
from flask_migrate import Migrate
from datetime import timedelta
import logging
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Initialize Flask extensions
db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
login_manager.session_protection = 'strong'
mail = Mail()
csrf = CSRFProtect()
migrate = Migrate()


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'error': 'Authentication required'}), 401


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'default_secret_key_for_development')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URI', 'sqlite:///blood_bank.db')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['WTF_CSRF_ENABLED'] = True
    app.config['WTF_CSRF_SECRET_KEY'] = os.getenv('CSRF_SECRET_KEY', 'default_csrf_key_for_development')

    # Session configuration
    session_hours = int(os.getenv('SESSION_LIFETIME_HOURS', 24))
    app.config['PERMANENT_SESSION_LIFETIME'] = timedelta(hours=session_hours)
    app.config['REMEMBER_COOKIE_DURATION'] = timedelta(hours=session_hours)
    app.config['SESSION_COOKIE_HTTPONLY'] = True
    app.config['REMEMBER_COOKIE_HTTPONLY'] = True

    # Cache lifetimes in seconds
    app.config['CACHE_DEFAULT_TTL'] = int(os.getenv('CACHE_DEFAULT_TTL', 60))
    app.config['HOSPITAL_CACHE_TTL'] = int(os.getenv('HOSPITAL_CACHE_TTL', 300))
    app.config['SURPLUS_CACHE_TTL'] = int(os.getenv('SURPLUS_CACHE_TTL', 300))
    app.config['INVENTORY_CACHE_TTL'] = int(os.getenv('INVENTORY_CACHE_TTL', 60))

    # Email configuration
    app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', 587))
    app.config['MAIL_USE_TLS'] = True
    app.config['MAIL_USERNAME'] = os.getenv('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD')
    app.config['MAIL_DEFAULT_SENDER'] = os.getenv('MAIL_DEFAULT_SENDER', 'noreply@bloodbank.local')

    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config['LOG_LEVEL'])
    logging.getLogger('bloodbank').setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions with app
    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)
    mail.init_app(app)
    csrf.init_app(app)
    migrate.init_app(app, db)

    # One cache per application instance
    from bloodbank.utils.cache import QueryCache
    app.extensions['query_cache'] = QueryCache(default_ttl=app.config['CACHE_DEFAULT_TTL'])

    @app.after_request
    def set_csrf_cookie(response):
        if app.config['WTF_CSRF_ENABLED'] and 'csrf_token' not in request.cookies:
            response.set_cookie('csrf_token', generate_csrf())
        return response

    from bloodbank.utils.errors import register_error_handlers
    register_error_handlers(app)

    # Register blueprints
    from bloodbank.routes.auth import auth
    from bloodbank.routes.inventory import inventory
    from bloodbank.routes.donor import donor
    from bloodbank.routes.surplus import surplus
    from bloodbank.routes.main import main

    app.register_blueprint(auth, url_prefix='/auth')
    app.register_blueprint(inventory, url_prefix='/inventory')
    app.register_blueprint(donor, url_prefix='/donor')
    app.register_blueprint(surplus, url_prefix='/surplus')
    app.register_blueprint(main)

    # Create database tables
    with app.app_context():
        from bloodbank import models  # noqa: F401
        db.create_all()

    return app

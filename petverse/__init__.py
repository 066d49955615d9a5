"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect, CSRFError
from werkzeug.exceptions import HTTPException
from petverse.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Session-cookie clients send X-CSRFToken (see /csrf-token)
    csrf = CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'success': False,
                        'message': 'Session expired or CSRF token missing. Reload and retry.'}), 400

    # Sentry error tracking in production only
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    from petverse.services.email_service import init_mail
    init_mail(app)

    from petverse.services.otp_service import init_otp
    init_otp(app)

    from petverse.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    from petverse.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        """Load the caller's identity for each request."""
        load_current_user()

    # Error Handlers
    from petverse.exceptions import PetverseError

    @app.errorhandler(PetverseError)
    def handle_petverse_error(error):
        """Render application exceptions as JSON."""
        if error.status_code >= 500:
            app.logger.error(f"PetverseError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PetverseError [{error.status_code}] {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'success': False, 'message': 'Not Found'}), 404

    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'status': 'error', 'success': False, 'message': error.description}), error.code

        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'success': False, 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from petverse.blueprints.main import main_bp
    from petverse.blueprints.products import products_bp
    from petverse.blueprints.cart import cart_bp
    from petverse.blueprints.orders import orders_bp
    from petverse.blueprints.otp import otp_bp
    from petverse.blueprints.payments import payments_bp
    from petverse.blueprints.loyalty import loyalty_bp
    from petverse.blueprints.appointments import appointments_bp
    from petverse.blueprints.advertisements import advertisements_bp
    from petverse.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(cart_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(otp_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(loyalty_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(advertisements_bp)
    app.register_blueprint(metrics_bp)

    # Scraped by Prometheus with GET only
    csrf.exempt(metrics_bp)

    from petverse.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"OTP_STORE_BACKEND={app.config.get('OTP_STORE_BACKEND')}")
    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")

    return app

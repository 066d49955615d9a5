"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name, default='false'):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = _env_bool('TESTING')

    # Session cookie is written by the auth service sharing SECRET_KEY
    SESSION_COOKIE_SECURE = _env_bool('SESSION_COOKIE_SECURE')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # CSRF (Flask-WTF). JSON clients send the token in X-CSRFToken
    WTF_CSRF_ENABLED = _env_bool('WTF_CSRF_ENABLED', 'true')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'petverse')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'petverse')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'petverse')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = _env_bool('SQLALCHEMY_ECHO')

    # Checkout pricing (amounts in LKR)
    DELIVERY_FEE = int(os.getenv('DELIVERY_FEE', '300'))
    POINT_VALUE = int(os.getenv('POINT_VALUE', '10'))  # 1 point = 10 LKR
    # Trust boundary: when enabled, a subtotal sent by the client wins over
    # the server-side sum of fulfilled lines. Pending product-owner decision.
    ACCEPT_CLIENT_SUBTOTAL = _env_bool('ACCEPT_CLIENT_SUBTOTAL', 'true')

    # Grooming package prices; an appointment keeps the price it was booked at
    APPOINTMENT_PACKAGE_PRICES = {
        'Basic': int(os.getenv('PACKAGE_PRICE_BASIC', '1500')),
        'Premium': int(os.getenv('PACKAGE_PRICE_PREMIUM', '2500')),
        'Luxury': int(os.getenv('PACKAGE_PRICE_LUXURY', '4000')),
    }
    MAX_AD_DURATION_DAYS = int(os.getenv('MAX_AD_DURATION_DAYS', '90'))

    # OTP gateway
    OTP_STORE_BACKEND = os.getenv('OTP_STORE_BACKEND', 'redis')  # redis | memory
    OTP_TTL_SECONDS = int(os.getenv('OTP_TTL_SECONDS', '300'))  # 5 minutes
    OTP_EXPIRED_GRACE_SECONDS = int(os.getenv('OTP_EXPIRED_GRACE_SECONDS', '600'))
    OTP_KEY_PREFIX = os.getenv('OTP_KEY_PREFIX', 'petverse:otp')

    # Redis (OTP store)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = _env_bool('MAIL_SUPPRESS_SEND')
    MAIL_ASYNC = _env_bool('MAIL_ASYNC', 'true')

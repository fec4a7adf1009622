"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Sale ledger backend
    SALE_API_URL = os.getenv('SALE_API_URL', 'http://localhost:8000/api/v1')
    SALE_API_TOKEN = os.getenv('SALE_API_TOKEN')
    SALE_API_TIMEOUT = int(os.getenv('SALE_API_TIMEOUT', '10'))  # seconds

    # Draft defaults
    DEFAULT_EXCHANGE_RATE = os.getenv('DEFAULT_EXCHANGE_RATE', '12500')
    FALLBACK_UNIT_PRICE = os.getenv('FALLBACK_UNIT_PRICE', '10000')
    DEFAULT_UNIT_SHORT_NAME = os.getenv('DEFAULT_UNIT_SHORT_NAME', 'pcs')
    DEBT_DEFAULT_TERM_DAYS = int(os.getenv('DEBT_DEFAULT_TERM_DAYS', '30'))
    PAYMENT_EPSILON = os.getenv('PAYMENT_EPSILON', '0.01')

    # Wire names per payment method; None keeps the backend defaults
    PAYMENT_METHOD_LABELS = None


class TestingConfig(Config):
    """Configuration for the test suite."""
    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SECRET_KEY = 'test-secret-key'
    SALE_API_URL = 'http://sale-api.test/api/v1'
    SALE_API_TOKEN = 'test-token'
    DEFAULT_EXCHANGE_RATE = '12500'

import os
from datetime import timedelta

# Get the project base directory
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
INSTANCE_DIR = os.path.join(BASE_DIR, 'instance')


def is_remote_configured(url, key):
    """Heuristic check only: a hosted project URL and a non-empty key. No connectivity probe."""
    return bool(url and key and '.supabase.co' in url and len(key) > 0)


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-farmtrack-secret-change-me'

    # Local fallback store (on-device SQLite via SQLAlchemy)
    SQLALCHEMY_DATABASE_URI = os.environ.get('LOCAL_DATABASE_URL') or \
        'sqlite:///' + os.path.join(INSTANCE_DIR, 'farmtrack.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False # Suppress overhead warning

    # JWT Configuration
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'dev-farmtrack-jwt-secret-change-me'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=12)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=30)

    # Remote store (hosted Supabase project)
    SUPABASE_URL = os.environ.get('SUPABASE_URL', '')
    SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')
    REMOTE_TIMEOUT = float(os.environ.get('REMOTE_TIMEOUT', '10'))
    REMOTE_RETRY_ATTEMPTS = int(os.environ.get('REMOTE_RETRY_ATTEMPTS', '3'))
    REMOTE_RETRY_BACKOFF = float(os.environ.get('REMOTE_RETRY_BACKOFF', '0.6'))

    # CORS
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:5173,http://localhost:3000').split(',')
    CORS_HEADERS = 'Content-Type'

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Page the dashboard sends users to when no session exists
    LOGIN_ROUTE = '/login'

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'WARNING')

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SUPABASE_URL = ''
    SUPABASE_ANON_KEY = ''
    REMOTE_TIMEOUT = 1.0
    REMOTE_RETRY_ATTEMPTS = 2
    REMOTE_RETRY_BACKOFF = 0.0
    JWT_SECRET_KEY = 'testing-jwt-secret-with-enough-length-for-hs256'

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}

"""Configuration settings for the OR Planner application."""

import os
from dotenv import load_dotenv

load_dotenv()


def _get_database_url():
    """Get and normalize the database URL."""
    url = os.environ.get('DATABASE_URL', 'sqlite:///orplanner.db')
    # Some hosts still hand out postgres:// but SQLAlchemy needs postgresql://
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def _get_engine_options(db_url):
    """Get SQLAlchemy engine options based on database type.

    PostgreSQL connections need pool management to handle:
    - Cold starts
    - Connection timeouts
    - Stale connections after idle periods
    """
    if db_url and db_url.startswith('postgresql://'):
        return {
            'pool_pre_ping': True,  # Verify connections before use
            'pool_recycle': 300,    # Recycle connections every 5 minutes
            'pool_size': 5,
            'max_overflow': 10,
        }
    return {}  # SQLite doesn't need pooling options


def _get_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Database configuration
    SQLALCHEMY_DATABASE_URI = _get_database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _get_engine_options(SQLALCHEMY_DATABASE_URI)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Planner
    PLANNER_DEFAULT_TABLE = os.environ.get('PLANNER_DEFAULT_TABLE', 'main')
    SEED_SAMPLE_PERSONNEL = _get_bool('SEED_SAMPLE_PERSONNEL')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # Roster uploads

    # Remote personnel directory
    DIRECTORY_BASE_URL = os.environ.get('DIRECTORY_BASE_URL', 'https://graph.microsoft.com/v1.0')
    DIRECTORY_SITE_ID = os.environ.get('DIRECTORY_SITE_ID', '')
    DIRECTORY_LIST_ID = os.environ.get('DIRECTORY_LIST_ID', '')
    DIRECTORY_ACCESS_TOKEN = os.environ.get('DIRECTORY_ACCESS_TOKEN', '')
    DIRECTORY_TIMEOUT = float(os.environ.get('DIRECTORY_TIMEOUT', 15))


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    SEED_SAMPLE_PERSONNEL = _get_bool('SEED_SAMPLE_PERSONNEL', True)


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False


class TestingConfig(Config):
    """Test configuration: private in-memory database, no remote directory."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SEED_SAMPLE_PERSONNEL = False
    DIRECTORY_SITE_ID = ''
    DIRECTORY_LIST_ID = ''
    DIRECTORY_ACCESS_TOKEN = ''


# Config selector
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get the appropriate configuration based on environment."""
    env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])

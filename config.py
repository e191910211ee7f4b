# Student360 Configuration

import os
from datetime import timedelta
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).parent.absolute()

DEFAULT_SECRET_KEY = 'student360-secret-key-change-me'


class Config:
    """Base configuration class"""

    # Flask Configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or DEFAULT_SECRET_KEY

    # Database Configuration
    DATABASE_PATH = BASE_DIR / 'database' / 'student360.db'

    # Upload Configuration
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024  # CSV uploads
    ALLOWED_IMPORT_EXTENSIONS = {'csv', 'txt'}

    # School Configuration
    SCHOOL_ID = os.environ.get('SCHOOL_ID') or 'demo-school'
    SCHOOL_NAME = os.environ.get('SCHOOL_NAME') or 'Demo School'
    BRAND_NAME = 'Student360'

    # Student / notes listing
    STUDENT_LIST_LIMIT = 20
    NOTES_LIST_LIMIT = 30
    CSV_IMPORT_MAX_ROWS = 200

    # QR Code Configuration
    QR_BOX_SIZE = 8
    QR_BORDER = 2

    # Scanner Configuration
    SCAN_SETTLE_DELAY_MS = 120
    CAMERA_INDEX = int(os.environ.get('CAMERA_INDEX') or 0)

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = False  # Set to True in production with HTTPS
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Identity Configuration
    PASSWORD_MIN_LENGTH = 6
    MAX_LOGIN_ATTEMPTS = 5
    LOGIN_LOCKOUT_DURATION = timedelta(minutes=15)
    ALLOW_SELF_SIGNUP = os.environ.get('ALLOW_SELF_SIGNUP', 'False').lower() in ['true', 'on', '1']

    # Logging Configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = BASE_DIR / 'logs' / 'student360.log'
    LOG_MAX_BYTES = 10 * 1024 * 1024  # 10MB
    LOG_BACKUP_COUNT = 5

    # Development Configuration
    DEBUG = os.environ.get('DEBUG', 'False').lower() in ['true', 'on', '1']
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Initialize application configuration"""
        directories = [cls.LOG_FILE.parent]
        if str(cls.DATABASE_PATH) != ':memory:':
            directories.append(Path(cls.DATABASE_PATH).parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        app.config.update({
            'SECRET_KEY': cls.SECRET_KEY,
            'DATABASE_PATH': str(cls.DATABASE_PATH),
            'PERMANENT_SESSION_LIFETIME': cls.PERMANENT_SESSION_LIFETIME,
            'SESSION_COOKIE_SECURE': cls.SESSION_COOKIE_SECURE,
            'SESSION_COOKIE_HTTPONLY': cls.SESSION_COOKIE_HTTPONLY,
            'SESSION_COOKIE_SAMESITE': cls.SESSION_COOKIE_SAMESITE,
            'MAX_CONTENT_LENGTH': cls.MAX_CONTENT_LENGTH,
            'ALLOWED_IMPORT_EXTENSIONS': cls.ALLOWED_IMPORT_EXTENSIONS,
            'SCHOOL_ID': cls.SCHOOL_ID,
            'SCHOOL_NAME': cls.SCHOOL_NAME,
            'BRAND_NAME': cls.BRAND_NAME,
            'STUDENT_LIST_LIMIT': cls.STUDENT_LIST_LIMIT,
            'NOTES_LIST_LIMIT': cls.NOTES_LIST_LIMIT,
            'CSV_IMPORT_MAX_ROWS': cls.CSV_IMPORT_MAX_ROWS,
            'QR_BOX_SIZE': cls.QR_BOX_SIZE,
            'QR_BORDER': cls.QR_BORDER,
            'SCAN_SETTLE_DELAY_MS': cls.SCAN_SETTLE_DELAY_MS,
            'CAMERA_INDEX': cls.CAMERA_INDEX,
            'PASSWORD_MIN_LENGTH': cls.PASSWORD_MIN_LENGTH,
            'MAX_LOGIN_ATTEMPTS': cls.MAX_LOGIN_ATTEMPTS,
            'LOGIN_LOCKOUT_DURATION': cls.LOGIN_LOCKOUT_DURATION,
            'ALLOW_SELF_SIGNUP': cls.ALLOW_SELF_SIGNUP,
            'LOG_LEVEL': cls.LOG_LEVEL,
            'DEBUG': cls.DEBUG,
            'TESTING': cls.TESTING,
        })


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False

    DATABASE_PATH = BASE_DIR / 'database' / 'student360_dev.db'

    # More verbose logging
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True

    DATABASE_PATH = BASE_DIR / 'database' / 'student360_test.db'
    SECRET_KEY = 'testing-secret-key'

    # Keep lockout tests quick
    MAX_LOGIN_ATTEMPTS = 3
    SCAN_SETTLE_DELAY_MS = 10


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Enhanced security for production
    SESSION_COOKIE_SECURE = True  # Requires HTTPS

    DATABASE_PATH = BASE_DIR / 'database' / 'student360_prod.db'

    # Production logging
    LOG_LEVEL = 'WARNING'

    @classmethod
    def init_app(cls, app):
        super().init_app(app)

        # Production-specific initialization
        import logging
        from logging.handlers import RotatingFileHandler

        if not app.debug:
            file_handler = RotatingFileHandler(
                cls.LOG_FILE,
                maxBytes=cls.LOG_MAX_BYTES,
                backupCount=cls.LOG_BACKUP_COUNT
            )
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
            file_handler.setLevel(logging.INFO)
            app.logger.addHandler(file_handler)

            app.logger.setLevel(logging.INFO)
            app.logger.info('Student360 startup')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}


def validate_config(config_class=Config):
    """Validate configuration settings"""
    errors = []

    if not config_class.SCHOOL_ID or '/' in config_class.SCHOOL_ID:
        errors.append(f"SCHOOL_ID must be a non-empty path segment: {config_class.SCHOOL_ID!r}")

    if config_class.CSV_IMPORT_MAX_ROWS <= 0:
        errors.append("CSV_IMPORT_MAX_ROWS must be positive")

    if config_class.SCAN_SETTLE_DELAY_MS < 0:
        errors.append("SCAN_SETTLE_DELAY_MS cannot be negative")

    if not config_class.DEBUG and config_class.SECRET_KEY == DEFAULT_SECRET_KEY:
        errors.append("SECRET_KEY must be set outside development")

    return errors


def init_config(app, config_name=None):
    """Initialize application with configuration"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    config_class = config.get(config_name, DevelopmentConfig)
    config_class.init_app(app)

    errors = validate_config(config_class)
    if errors:
        for error in errors:
            app.logger.error(f"Configuration error: {error}")
        raise RuntimeError("Configuration validation failed")

    return config_class

import os


def _bool_env(key: str, default: str = "false") -> bool:
    return os.environ.get(key, default).lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///trainerplus.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-jwt-secret-key")
    JWT_ALGORITHM = "HS256"
    JWT_ACCESS_TTL_MINUTES = int(os.environ.get("JWT_ACCESS_TTL_MINUTES", 15))
    JWT_REFRESH_TTL_HOURS = int(os.environ.get("JWT_REFRESH_TTL_HOURS", 168))

    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", 300))

    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "kzt")
    SUBSCRIPTION_VALIDITY_DAYS = int(os.getenv("SUBSCRIPTION_VALIDITY_DAYS", 90))
    ATTENDANCE_RESTORE_CREDIT_ON_DELETE = _bool_env("ATTENDANCE_RESTORE_CREDIT_ON_DELETE")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", "true")
    RATE_LIMIT_PER_WINDOW = int(os.getenv("RATE_LIMIT_PER_WINDOW", 100))
    RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", 60))
    RATE_LIMIT_STORAGE_URL = os.getenv("RATE_LIMIT_STORAGE_URL", "memory://")

    # Hops whose X-Forwarded-For may be trusted; 0 means use the socket peer only
    TRUSTED_PROXY_COUNT = int(os.getenv("TRUSTED_PROXY_COUNT", 0))

    CORS_ALLOWED_ORIGINS =os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173")

    LOG_JSON = _bool_env("TRAINERPLUS_LOG_JSON", "true")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    METRICS_ENABLED = _bool_env("TRAINERPLUS_METRICS_ENABLED", "true")
    DB_MIGRATE_ON_START = _bool_env("TRAINERPLUS_DB_MIGRATE_ON_START", "true")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    STRIPE_SECRET_KEY = "sk_test_dummy"
    STRIPE_WEBHOOK_SECRET = "whsec_test_secret"
    RATE_LIMIT_ENABLED = False
    ATTENDANCE_RESTORE_CREDIT_ON_DELETE = False
    LOG_JSON = False
    METRICS_ENABLED = True
    DB_MIGRATE_ON_START = False

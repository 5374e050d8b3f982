import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///kesimarket.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # Remote REST API
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:3001")
    API_TIMEOUT = float(os.getenv("API_TIMEOUT", "30"))
    API_RETRY_ATTEMPTS = int(os.getenv("API_RETRY_ATTEMPTS", "3"))
    API_RETRY_DELAY = float(os.getenv("API_RETRY_DELAY", "1.0"))
    API_CACHE_TTL = int(os.getenv("API_CACHE_TTL", "300"))
    API_CACHE_MAXSIZE = int(os.getenv("API_CACHE_MAXSIZE", "512"))

    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "XAF")
    CURRENCY_CODE = os.getenv("CURRENCY_CODE", "XAF")

    # Simple pagination defaults
    DEFAULT_PER_PAGE = int(os.getenv("DEFAULT_PER_PAGE", "20"))
    MAX_PER_PAGE = int(os.getenv("MAX_PER_PAGE", "100"))

    # Comma-separated list
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

    CART_SESSION_RETENTION_DAYS = int(os.getenv("CART_SESSION_RETENTION_DAYS", "30"))

    APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT = int(os.getenv("APP_PORT", "8080"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    API_BASE_URL = "http://api.test"
    API_RETRY_ATTEMPTS = 0
    API_RETRY_DELAY = 0.0

import os
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env (only for local development)
if os.getenv("FLASK_ENV") != "production":
    load_dotenv()
    print("[DEBUG] Loaded .env file for local development.")


class Config:
    """Base configuration."""

    # General settings
    SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///dispatchlink.sqlite3")
    print(f"[DEBUG] DATABASE_URL scheme: {SQLALCHEMY_DATABASE_URI.split(':', 1)[0]}")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "default-jwt-secret-key")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "168")))

    # CORS configuration
    CORS_ORIGINS = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "").split(",") if origin.strip()
    ]
    print(f"[DEBUG] Processed CORS_ORIGINS: {CORS_ORIGINS}")

    # Debug mode
    DEBUG = os.getenv("FLASK_ENV") != "production"
    print(f"[DEBUG] FLASK_ENV: {os.getenv('FLASK_ENV')}")
    print(f"[DEBUG] DEBUG mode: {DEBUG}")


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    SECRET_KEY = "test-secret-key"
    BCRYPT_LOG_ROUNDS = 4

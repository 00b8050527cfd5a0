"""
Configuration settings for the Certificate Verification Backend
"""

import os
import logging

logger = logging.getLogger(__name__)

# Environment configuration
ENV = os.getenv("ENV", "PROD")  # PROD or QA
PORT = int(os.getenv("PORT", 8080))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Remote participant table (hosted Postgres); optional
DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 1))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 10))
DB_COMMAND_TIMEOUT = float(os.getenv("DB_COMMAND_TIMEOUT", 30))
PARTICIPANTS_TABLE = os.getenv("PARTICIPANTS_TABLE", "participants")
CHANGES_CHANNEL = os.getenv("CHANGES_CHANNEL", "participants_changes")

# Local fallback storage; an empty path selects the in-process memory store
LOCAL_CACHE_PATH = os.getenv("LOCAL_CACHE_PATH", os.path.join("data", "participants.json"))
SYNC_POLL_INTERVAL = float(os.getenv("SYNC_POLL_INTERVAL", 5))

# Admin dashboard credentials
ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")


class AdminTokenConfig:
    """Environment-isolated token configuration for the admin dashboard"""

    QA_CONFIG = {
        "secret": os.getenv("ADMIN_JWT_SECRET", "qa-default-secret-for-development"),
        "issuer": "certverify-qa-auth",
        "audience": "certverify-qa-admin",
        "allowed_algorithms": ["HS256"],
        "max_token_age": int(os.getenv("ADMIN_TOKEN_MAX_AGE", 3600)),
    }

    PROD_CONFIG = {
        "secret": os.getenv("ADMIN_JWT_SECRET", "prod-default-secret-change-in-production"),
        "issuer": "certverify-prod-auth",
        "audience": "certverify-prod-admin",
        "allowed_algorithms": ["HS256"],
        "max_token_age": int(os.getenv("ADMIN_TOKEN_MAX_AGE", 3600)),
    }

    @classmethod
    def get_config(cls):
        """Get token configuration for current environment"""
        return cls.QA_CONFIG if ENV == "QA" else cls.PROD_CONFIG


# CSV import limits
MAX_IMPORT_FILE_SIZE = int(os.getenv("MAX_IMPORT_FILE_SIZE", 5 * 1024 * 1024))
IMPORT_ERROR_LIMIT = int(os.getenv("IMPORT_ERROR_LIMIT", 5))

# CORS settings
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

logger.info(f"Environment: {ENV}")

# Warn about optional configuration
if not DATABASE_URL:
    logger.warning("DATABASE_URL not set - participants will be served from local storage only")
if not ADMIN_PASSWORD:
    logger.warning("ADMIN_PASSWORD not set - admin login is disabled")

"""
Admin authentication: credential check and access token handling for the dashboard
"""

import hmac
import logging
import time
from typing import Any, Dict, Optional

import jwt

from config.settings import ADMIN_USERNAME, ADMIN_PASSWORD, AdminTokenConfig, ENV

logger = logging.getLogger(__name__)


class AdminAuthService:
    """Checks the configured admin credential pair and issues short-lived JWTs"""

    def __init__(
        self,
        username: str = ADMIN_USERNAME,
        password: Optional[str] = ADMIN_PASSWORD,
        token_config: Optional[Dict[str, Any]] = None
    ):
        self.username = username
        self.password = password
        self.token_config = token_config or AdminTokenConfig.get_config()
        self.secret_key = self.token_config["secret"]
        self.algorithm = self.token_config["allowed_algorithms"][0]
        self.issuer = self.token_config["issuer"]
        self.audience = self.token_config["audience"]
        self.max_token_age = self.token_config["max_token_age"]

    @property
    def enabled(self) -> bool:
        return bool(self.password)

    def check_credentials(self, username: str, password: str) -> bool:
        """Constant-time comparison against the configured pair"""
        if not self.enabled:
            logger.warning("AUTH: Login attempted but no admin password is configured")
            return False

        username_ok = hmac.compare_digest(username.encode(), self.username.encode())
        password_ok = hmac.compare_digest(password.encode(), self.password.encode())
        return username_ok and password_ok

    def generate_token(self, username: str) -> str:
        current_time = int(time.time())
        payload = {
            "iss": self.issuer,
            "sub": username,
            "aud": self.audience,
            "environment": ENV,
            "iat": current_time,
            "exp": current_time + self.max_token_age
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        logger.info(f"AUTH: Issued admin token for {username}, valid {self.max_token_age}s")
        return token

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and verify an admin token

        Raises:
            jwt.InvalidTokenError: If the token is expired, tampered or for another audience
        """
        return jwt.decode(
            token,
            self.secret_key,
            algorithms=self.token_config["allowed_algorithms"],
            audience=self.audience,
            issuer=self.issuer,
            options={"require": ["exp", "iat", "sub"]}
        )

"""
Admin credential check and token lifecycle
"""

import jwt
import pytest

from services.admin_auth import AdminAuthService


def token_config(**overrides):
    config = {
        "secret": "test-secret-for-admin-tokens-0123456789",
        "issuer": "certverify-test-auth",
        "audience": "certverify-test-admin",
        "allowed_algorithms": ["HS256"],
        "max_token_age": 900,
    }
    config.update(overrides)
    return config


@pytest.fixture
def auth():
    return AdminAuthService("admin", "s3cret", token_config())


class TestCredentials:

    def test_matching_pair(self, auth):
        assert auth.check_credentials("admin", "s3cret")

    def test_wrong_password(self, auth):
        assert not auth.check_credentials("admin", "S3cret")

    def test_wrong_username(self, auth):
        assert not auth.check_credentials("root", "s3cret")

    def test_disabled_without_password(self):
        auth = AdminAuthService("admin", None, token_config())

        assert not auth.enabled
        assert not auth.check_credentials("admin", "")


class TestTokens:

    def test_round_trip(self, auth):
        payload = auth.validate_token(auth.generate_token("admin"))

        assert payload["sub"] == "admin"
        assert payload["iss"] == "certverify-test-auth"
        assert payload["exp"] - payload["iat"] == 900

    def test_expired_token_is_rejected(self):
        auth = AdminAuthService("admin", "s3cret", token_config(max_token_age=-30))

        with pytest.raises(jwt.ExpiredSignatureError):
            auth.validate_token(auth.generate_token("admin"))

    def test_other_audience_is_rejected(self, auth):
        other = AdminAuthService("admin", "s3cret", token_config(audience="certverify-other-admin"))

        with pytest.raises(jwt.InvalidAudienceError):
            auth.validate_token(other.generate_token("admin"))

    def test_other_secret_is_rejected(self, auth):
        forged = AdminAuthService("admin", "s3cret", token_config(secret="guessed-secret-for-admin-tokens-987654"))

        with pytest.raises(jwt.InvalidSignatureError):
            auth.validate_token(forged.generate_token("admin"))

    def test_garbage_is_rejected(self, auth):
        with pytest.raises(jwt.InvalidTokenError):
            auth.validate_token("not-a-token")

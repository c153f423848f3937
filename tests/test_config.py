"""Tests for configuration and bearer auth."""

import pytest

from nahcloud import ClientConfig, NahCloudClient
from nahcloud.auth import BearerTokenAuth
from nahcloud.config import DEFAULT_ENDPOINT, DEFAULT_TIMEOUT


@pytest.fixture
def clean_env(monkeypatch):
    """Remove NAH_* variables from the environment."""
    for name in ("NAH_ENDPOINT", "NAH_TOKEN", "NAH_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestClientConfig:
    """Tests for configuration resolution."""

    def test_defaults(self, clean_env):
        """Test defaults with nothing configured."""
        config = ClientConfig.resolve()

        assert config.endpoint == DEFAULT_ENDPOINT
        assert config.token is None
        assert config.timeout == DEFAULT_TIMEOUT

    def test_env_fallback(self, clean_env):
        """Test environment variables fill unset values."""
        clean_env.setenv("NAH_ENDPOINT", "http://localhost:8080/")
        clean_env.setenv("NAH_TOKEN", "env-token")
        clean_env.setenv("NAH_TIMEOUT", "12.5")

        config = ClientConfig.resolve()

        assert config.endpoint == "http://localhost:8080"
        assert config.token == "env-token"
        assert config.timeout == 12.5

    def test_explicit_wins(self, clean_env):
        """Test explicit arguments take precedence over environment."""
        clean_env.setenv("NAH_ENDPOINT", "http://env")
        clean_env.setenv("NAH_TOKEN", "env-token")

        config = ClientConfig.resolve(endpoint="http://arg", token="arg-token", timeout=3)

        assert config.endpoint == "http://arg"
        assert config.token == "arg-token"
        assert config.timeout == 3.0

    def test_empty_token_is_none(self, clean_env):
        """Test empty token env means unauthenticated."""
        clean_env.setenv("NAH_TOKEN", "")

        assert ClientConfig.resolve().token is None

    def test_invalid_timeout(self, clean_env):
        """Test non-numeric timeout is rejected."""
        clean_env.setenv("NAH_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="NAH_TIMEOUT"):
            ClientConfig.resolve()

    def test_repr_masks_token(self):
        """Test the token never appears in repr."""
        config = ClientConfig(token="secret-value")

        assert "secret-value" not in repr(config)

    def test_client_from_env(self, clean_env, fake_server, api):
        """Test from_env builds a working client."""
        clean_env.setenv("NAH_ENDPOINT", fake_server.url)
        clean_env.setenv("NAH_TOKEN", "env-token")

        with NahCloudClient.from_env() as client:
            client.create_bucket("logs")

        assert api.last_request["headers"]["Authorization"] == "Bearer env-token"


class TestBearerTokenAuth:
    """Tests for bearer header construction."""

    def test_header_with_token(self):
        """Test token header format."""
        auth = BearerTokenAuth("abc")

        assert auth.get_auth_header() == {"Authorization": "Bearer abc"}
        assert auth.is_authenticated

    @pytest.mark.parametrize("token", [None, ""])
    def test_no_header_without_token(self, token):
        """Test no header at all without a token."""
        auth = BearerTokenAuth(token)

        assert auth.get_auth_header() == {}
        assert not auth.is_authenticated

    def test_repr_masks_token(self):
        """Test token is masked in repr."""
        assert "abc" not in repr(BearerTokenAuth("abc"))

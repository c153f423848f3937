"""Client configuration resolved from arguments and environment variables.

Environment variables (used when no explicit value is given):
- NAH_ENDPOINT: API base URL
- NAH_TOKEN: bearer token
- NAH_TIMEOUT: per-request timeout in seconds
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://nahcloud.com"
DEFAULT_TIMEOUT = 30.0

ENDPOINT_ENV = "NAH_ENDPOINT"
TOKEN_ENV = "NAH_TOKEN"
TIMEOUT_ENV = "NAH_TIMEOUT"


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client configuration shared by every call site."""

    endpoint: str = DEFAULT_ENDPOINT
    token: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def resolve(
        cls,
        endpoint: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> "ClientConfig":
        """Resolve configuration: explicit values first, then environment.

        Args:
            endpoint: API base URL (or from env: NAH_ENDPOINT)
            token: Bearer token (or from env: NAH_TOKEN)
            timeout: Timeout in seconds (or from env: NAH_TIMEOUT)

        Raises:
            ValueError: If the timeout is not a positive number
        """
        endpoint = endpoint or os.getenv(ENDPOINT_ENV) or DEFAULT_ENDPOINT
        token = token or os.getenv(TOKEN_ENV) or None

        if timeout is None:
            raw = os.getenv(TIMEOUT_ENV)
            if raw:
                try:
                    timeout = float(raw)
                except ValueError:
                    raise ValueError(f"{TIMEOUT_ENV} must be a number, got {raw!r}") from None
            else:
                timeout = DEFAULT_TIMEOUT
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        config = cls(endpoint=endpoint.rstrip("/"), token=token, timeout=float(timeout))
        logger.debug(
            "Client configuration resolved",
            extra={
                "endpoint": config.endpoint,
                "has_token": config.token is not None,
                "timeout": config.timeout,
            }
        )
        return config

    def __repr__(self) -> str:
        masked = "***" if self.token else None
        return (
            f"ClientConfig(endpoint={self.endpoint!r}, token={masked!r}, "
            f"timeout={self.timeout!r})"
        )

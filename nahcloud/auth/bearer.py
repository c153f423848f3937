"""Bearer token authentication handler."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class BearerTokenAuth:
    """Bearer token authentication handler.

    With no token configured, requests go out unauthenticated and the
    service decides whether to reject them.
    """

    def __init__(self, token: Optional[str] = None, header_name: str = "Authorization"):
        """Initialize bearer auth.

        Args:
            token: API token (None or empty means unauthenticated)
            header_name: Name of the header carrying the token
        """
        self.token = token or None
        self.header_name = header_name

        logger.debug(
            "BearerTokenAuth initialized",
            extra={"header_name": header_name, "has_token": self.token is not None}
        )

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def get_auth_header(self) -> dict:
        """Get authorization header dict for requests.

        Returns empty dict if no token is configured.
        """
        if self.token is None:
            return {}
        return {self.header_name: f"Bearer {self.token}"}

    def __repr__(self) -> str:
        masked = "***" if self.token else None
        return f"BearerTokenAuth(token={masked!r}, header_name={self.header_name!r})"

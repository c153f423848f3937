"""Base API client with common functionality."""

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError
from urllib3.util.retry import Retry

from nahcloud import __version__
from nahcloud.clients.context import CallContext
from nahcloud.clients.errors import (
    APIError,
    DeadlineExceededError,
    DecodingError,
    EncodingError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = f"nahcloud-python/{__version__}"


@dataclass
class RequestMetrics:
    """Metrics for API requests."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    cancelled_requests: int = 0
    total_duration_ms: float = 0
    request_durations: list[float] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_request(self, duration_ms: float, success: bool) -> None:
        """Record a request."""
        with self._lock:
            self.total_requests += 1
            self.total_duration_ms += duration_ms
            self.request_durations.append(duration_ms)
            if success:
                self.successful_requests += 1
            else:
                self.failed_requests += 1

    def record_cancel(self) -> None:
        """Record a cancelled request."""
        with self._lock:
            self.cancelled_requests += 1

    @property
    def avg_duration_ms(self) -> float:
        """Average request duration."""
        if not self.request_durations:
            return 0
        return sum(self.request_durations) / len(self.request_durations)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "cancelled_requests": self.cancelled_requests,
            "total_duration_ms": round(self.total_duration_ms, 2),
            "avg_duration_ms": round(self.avg_duration_ms, 2),
        }


def _close_late_response(future: Future) -> None:
    """Release the connection of a response nobody is waiting for."""
    if future.cancelled() or future.exception() is not None:
        return
    future.result().close()


class BaseAPIClient(ABC):
    """Base class for JSON API clients.

    Every call is a single request: nothing is retried unless
    `max_retries` is set, and only idempotent methods are retried then.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        max_retries: int = 0,
        backoff_factor: float = 0.5,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        max_workers: int = 8,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Retry attempts for GET/DELETE on connection errors and 502-504
            backoff_factor: Exponential backoff factor between retries
            session: Optional preconfigured requests session
            user_agent: User-Agent header value
            max_workers: Worker threads running requests; queued calls count
                against their timeout
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.user_agent = user_agent
        self.max_workers = max_workers

        # Metrics tracking
        self.metrics = RequestMetrics()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

        self.session = session or requests.Session()
        if max_retries > 0:
            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=backoff_factor,
                status_forcelist=[502, 503, 504],
                allowed_methods=["GET", "DELETE"],
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)

    @abstractmethod
    def get_auth_headers(self) -> dict:
        """Get authentication headers for requests."""
        pass

    def close(self) -> None:
        """Close the HTTP session and stop worker threads."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="nahcloud-request",
                )
            return self._executor

    def _encode_body(self, method: str, endpoint: str, json_data: Any) -> Optional[bytes]:
        if json_data is None:
            return None
        try:
            return json.dumps(json_data).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodingError(
                f"Failed to encode request body for {method} {endpoint}: {e}"
            ) from e

    def _send(
        self,
        method: str,
        endpoint: str,
        body: Optional[bytes],
        timeout: float,
    ) -> requests.Response:
        """Send one request, mapping requests exceptions to transport errors."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        request_headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if body is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(self.get_auth_headers())

        try:
            return self.session.request(
                method=method,
                url=url,
                data=body,
                headers=request_headers,
                timeout=timeout,
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(
                f"{method} {endpoint} timed out after {timeout:.2f}s", method, endpoint
            ) from e
        except requests.exceptions.ConnectionError as e:
            # A read timeout while the body streams in surfaces as ConnectionError
            if e.args and isinstance(e.args[0], ReadTimeoutError):
                raise RequestTimeoutError(
                    f"{method} {endpoint} timed out after {timeout:.2f}s", method, endpoint
                ) from e
            raise TransportError(
                f"{method} {endpoint} failed: {e}", method, endpoint
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(
                f"{method} {endpoint} failed: {e}", method, endpoint
            ) from e

    def _send_bounded(
        self,
        method: str,
        endpoint: str,
        body: Optional[bytes],
        ctx: Optional[CallContext] = None,
    ) -> requests.Response:
        """Run a send on a worker thread and wait at most the call timeout.

        `timeout` on a requests call only bounds each socket read, so the
        whole call is bounded here. The wait also ends early when `ctx` is
        cancelled. A response that arrives after the caller gave up is
        closed and dropped.
        """
        if ctx is not None and ctx.cancelled:
            raise RequestCancelledError(
                f"{method} {endpoint} cancelled before sending", method, endpoint
            )
        if ctx is not None and ctx.expired:
            raise DeadlineExceededError(
                f"{method} {endpoint} deadline exceeded before sending", method, endpoint
            )

        timeout = self.timeout
        remaining = ctx.remaining() if ctx is not None else None
        deadline_bound = remaining is not None and remaining < self.timeout
        if deadline_bound:
            timeout = remaining

        finished = threading.Event()
        future = self._get_executor().submit(self._send, method, endpoint, body, timeout)
        future.add_done_callback(lambda _: finished.set())
        unregister = ctx.add_cancel_callback(finished.set) if ctx is not None else None
        try:
            finished.wait(timeout)
        finally:
            if unregister is not None:
                unregister()

        if future.done():
            try:
                return future.result()
            except RequestTimeoutError as e:
                # The socket timeout was the deadline, not the client timeout
                if deadline_bound:
                    raise DeadlineExceededError(
                        f"{method} {endpoint} deadline exceeded", method, endpoint
                    ) from e
                raise

        future.cancel()
        future.add_done_callback(_close_late_response)
        if ctx is not None and ctx.cancelled:
            self.metrics.record_cancel()
            raise RequestCancelledError(f"{method} {endpoint} cancelled", method, endpoint)
        if deadline_bound:
            self.metrics.record_cancel()
            raise DeadlineExceededError(f"{method} {endpoint} deadline exceeded", method, endpoint)
        raise RequestTimeoutError(
            f"{method} {endpoint} timed out after {timeout:.2f}s", method, endpoint
        )

    def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: Any = None,
        ctx: Optional[CallContext] = None,
    ) -> requests.Response:
        """Make HTTP request with timing and logging.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (will be joined with base_url)
            json_data: JSON body data
            ctx: Optional cancellation/deadline context

        Returns:
            Response object with a status code below 400

        Raises:
            EncodingError: If json_data cannot be serialized
            TransportError: If no response was received
            APIError: On status codes >= 400
        """
        body = self._encode_body(method, endpoint, json_data)

        # Start timing
        start_time = time.time()

        logger.debug(
            f"Making {method} request",
            extra={
                "method": method,
                "endpoint": endpoint,
                "has_body": body is not None,
            }
        )

        try:
            response = self._send_bounded(method, endpoint, body, ctx)
        except TransportError as e:
            duration_ms = (time.time() - start_time) * 1000
            if not isinstance(e, RequestCancelledError):
                self.metrics.record_request(duration_ms, success=False)

            logger.error(
                f"API request failed",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "duration_ms": round(duration_ms, 2),
                }
            )
            raise

        # Calculate duration
        duration_ms = (time.time() - start_time) * 1000
        self.metrics.record_request(duration_ms, success=response.ok)

        if response.status_code >= 400:
            logger.warning(
                f"API request rejected",
                extra={
                    "method": method,
                    "endpoint": endpoint,
                    "status_code": response.status_code,
                    "duration_ms": round(duration_ms, 2),
                }
            )
            raise APIError(response.status_code, response.text, method, endpoint)

        # Log request completion
        logger.info(
            f"API request completed",
            extra={
                "method": method,
                "endpoint": endpoint,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "response_size_bytes": len(response.content),
            }
        )

        return response

    def request_json(
        self,
        method: str,
        endpoint: str,
        json_data: Any = None,
        ctx: Optional[CallContext] = None,
    ) -> Any:
        """Make a request and return the decoded JSON body.

        Returns None when the response has no body.

        Raises:
            DecodingError: If a non-empty body is not valid JSON
        """
        response = self._make_request(method, endpoint, json_data=json_data, ctx=ctx)
        if not response.content or not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DecodingError(
                f"Invalid JSON in response to {method} {endpoint}: {e}",
                body=response.text,
            ) from e

    def get(self, endpoint: str, ctx: Optional[CallContext] = None) -> Any:
        """Make GET request and return JSON response."""
        return self.request_json("GET", endpoint, ctx=ctx)

    def post(self, endpoint: str, json_data: Any = None, ctx: Optional[CallContext] = None) -> Any:
        """Make POST request and return JSON response."""
        return self.request_json("POST", endpoint, json_data=json_data, ctx=ctx)

    def patch(self, endpoint: str, json_data: Any = None, ctx: Optional[CallContext] = None) -> Any:
        """Make PATCH request and return JSON response."""
        return self.request_json("PATCH", endpoint, json_data=json_data, ctx=ctx)

    def delete(self, endpoint: str, ctx: Optional[CallContext] = None) -> Any:
        """Make DELETE request and return JSON response, if any."""
        return self.request_json("DELETE", endpoint, ctx=ctx)

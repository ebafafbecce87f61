"""Rate-limit aware HTTP transport for the Jira REST API.

Every outbound call goes through :class:`RateLimitedTransport.send`. A 429
response is drained, logged once, and the identical request is sent exactly
one more time after a fixed pause. There is no further retry.
"""

import logging
import time
from collections.abc import Callable
from typing import Any

import requests
from requests import PreparedRequest, Response

from p2j.clients.exceptions import TransportError

HTTP_TOO_MANY_REQUESTS = 429
DEFAULT_BACKOFF_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 60


class RateLimitedTransport:
    """Send requests through a shared session with a single rate-limit retry."""

    def __init__(
        self,
        session: requests.Session,
        logger: logging.Logger,
        *,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        verify: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the transport.

        Args:
            session: Session carrying authentication and default headers
            logger: Logger receiving the rate-limit warning
            backoff_seconds: Pause before the single retry
            timeout: Per-attempt timeout handed to requests
            verify: TLS certificate verification
            sleep: Sleep function, replaceable in tests

        """
        self.session = session
        self.logger = logger
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        self.verify = verify
        self._sleep = sleep

    def prepare(self, method: str, url: str, **kwargs: Any) -> PreparedRequest:
        """Build a prepared request whose body is fully buffered in memory.

        File-like ``data`` is read up front so that a retry sends the same bytes.
        """
        data = kwargs.get("data")
        if data is not None and hasattr(data, "read"):
            kwargs["data"] = data.read()

        request = requests.Request(method=method.upper(), url=url, **kwargs)
        prepared = self.session.prepare_request(request)

        # Generators and streams would be exhausted by the first attempt
        if prepared.body is not None and not isinstance(prepared.body, (bytes, str)):
            prepared.body = b"".join(prepared.body)  # type: ignore[arg-type]
        return prepared

    def send(self, method: str, url: str, **kwargs: Any) -> Response:
        """Send a request, retrying once after a pause on HTTP 429.

        Args:
            method: HTTP method
            url: Absolute URL
            **kwargs: Passed to :class:`requests.Request` (json, data, files, headers, params)

        Returns:
            The response of the first attempt, or of the retry after a 429

        Raises:
            TransportError: If either attempt fails at the connection level

        """
        prepared = self.prepare(method, url, **kwargs)

        response = self._send_once(prepared)
        if response.status_code != HTTP_TOO_MANY_REQUESTS:
            return response

        # Drain and release the connection before waiting
        body = response.text
        response.close()

        self.logger.warning(
            "Rate limit reached for %s %s, retrying in %.0f seconds: %s",
            prepared.method,
            prepared.url,
            self.backoff_seconds,
            body[:300],
        )
        self._sleep(self.backoff_seconds)

        return self._send_once(prepared.copy())

    def _send_once(self, prepared: PreparedRequest) -> Response:
        try:
            return self.session.send(prepared, timeout=self.timeout, verify=self.verify)
        except requests.RequestException as e:
            msg = f"Error during API request to {prepared.url}: {e!s}"
            raise TransportError(msg) from e

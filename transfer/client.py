"""HTTP client for communicating with a LocalEGA instance."""

import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

import httpx

from common.config import Config
from common.constants import SUCCESS_STATUS_CODES
from common.exceptions import TransportError
from common.logging_config import get_logger

logger = get_logger(__name__)


class LegaClient:
    """Blocking HTTP primitive shared by every remote operation."""

    def __init__(self, config: Config, session: Optional[httpx.Client] = None):
        """
        Initialize the client.

        Args:
            config: Configuration instance
            session: Optional preconfigured httpx.Client (tests inject a MockTransport)
        """
        self.config = config
        self.session = session or httpx.Client(timeout=config.get_timeout())
        self.request_id = None
        logger.info(f"Initialized LegaClient [instance_url={config.get_instance_url()}]")

    def proxy_headers(self) -> dict:
        """
        Headers authenticating against the proxy with the long-lived credential.
        """
        return {'Proxy-Authorization': f'Bearer {self.config.get_elixir_aai_token()}'}

    def basic_auth(self) -> tuple[str, str]:
        return (self.config.get_central_ega_username(), self.config.get_central_ega_password())

    def _prepare(self, headers: Optional[dict]) -> dict:
        self.request_id = str(uuid.uuid4())
        prepared = dict(headers or {})
        prepared['X-Request-ID'] = self.request_id
        return prepared

    def do_request(
        self,
        method: str,
        url: str,
        content: Optional[bytes] = None,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
        auth: Optional[tuple[str, str]] = None,
    ) -> httpx.Response:
        """
        Perform a single HTTP request. No retries.

        Args:
            method: HTTP method (GET, PATCH, DELETE, ...)
            url: Absolute URL
            content: Optional raw request body
            headers: Extra request headers
            params: Query parameters, sent in insertion order
            auth: Optional basic credential pair

        Returns:
            HTTP response object, whatever its status

        Raises:
            TransportError: If the request could not be completed
        """
        headers = self._prepare(headers)
        logger.debug(f"Making request: {method} {url} params={params} [request_id={self.request_id}]")
        try:
            response = self.session.request(
                method, url, content=content, headers=headers, params=params, auth=auth
            )
        except httpx.HTTPError as e:
            logger.error(f"Network error: {method} {url} error={e} [request_id={self.request_id}]")
            raise TransportError(f"{method} {url} failed: {e}") from e

        logger.debug(
            f"Response received: {method} {url} status={response.status_code} [request_id={self.request_id}]"
        )
        return response

    @contextmanager
    def stream(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        params: Optional[dict] = None,
        auth: Optional[tuple[str, str]] = None,
    ) -> Iterator[httpx.Response]:
        """
        Perform a streamed request; the body is read by the caller.

        Raises:
            TransportError: If the connection fails before or while streaming
        """
        headers = self._prepare(headers)
        logger.debug(f"Streaming request: {method} {url} [request_id={self.request_id}]")
        try:
            with self.session.stream(method, url, headers=headers, params=params, auth=auth) as response:
                yield response
        except httpx.HTTPError as e:
            logger.error(f"Network error while streaming: {method} {url} error={e} [request_id={self.request_id}]")
            raise TransportError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def check_status(response: httpx.Response) -> httpx.Response:
        """
        Raise TransportError unless the status is 200 or 201.

        The message is the bare status line, e.g. "500 Internal Server Error".
        """
        if response.status_code not in SUCCESS_STATUS_CODES:
            logger.warning(f"Request rejected: status={response.status_code}")
            raise TransportError(f"{response.status_code} {response.reason_phrase}", status_code=response.status_code)
        return response

    @staticmethod
    def parse_json(response: httpx.Response) -> dict:
        """
        Decode a JSON object body.

        Raises:
            TransportError: If the body is not a JSON object
        """
        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Malformed response body: {e}") from e
        if not isinstance(data, dict):
            raise TransportError("Malformed response body: expected a JSON object")
        return data

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

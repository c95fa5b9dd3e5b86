"""
HTTP API Client for the Grocery Store auth client.

This module sends authenticated requests to the backend. It attaches the stored
access token, and when the server answers 401 it refreshes the token once and
replays the original request once. Every other status is decoded into the
response envelope and returned to the caller, who inspects ``status``/``errors``.
"""

import asyncio
import json
import logging
from typing import Optional, Dict, Any, Tuple, Type

from aiohttp import ClientSession, ClientTimeout, ClientError
from pydantic import ValidationError

from shared.exceptions import (
    ErrorCode, TransportError, DecodingError, UnauthorizedError
)
from shared.interfaces import ICredentialStore
from shared.logging_config import AuditLogger
from shared.models import (
    ApiResponse, HTTPMethod, RequestEnvelope, RefreshTokenRequest,
    RefreshTokenResponseData
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
REFRESH_TOKEN_PATH = "/auth/refresh-token"


class GroceryAPIClient:
    """
    Authenticated request executor for the grocery backend.

    A 401 triggers at most one refresh and one retry per ``send`` call.
    Concurrent calls that hit 401 at the same time may each refresh; the store
    ends up holding the last pair written.
    """

    def __init__(
        self,
        base_url: str,
        token_storage: ICredentialStore,
        timeout: float = DEFAULT_TIMEOUT,
        clear_on_refresh_failure: bool = True,
        user_agent: str = "GroceryStoreClient/1.0"
    ):
        self.base_url = base_url.rstrip('/')
        self.token_storage = token_storage
        self.timeout = ClientTimeout(total=timeout)
        self.clear_on_refresh_failure = clear_on_refresh_failure
        self.user_agent = user_agent

        self._session: Optional[ClientSession] = None
        self._audit = AuditLogger()

        logger.info(f"API client initialized for server: {self.base_url}")

    async def __aenter__(self):
        """Async context manager entry."""
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def _ensure_session(self) -> None:
        """Ensure HTTP session is available."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                timeout=self.timeout,
                headers={'User-Agent': self.user_agent}
            )

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def build_url(self, path: str) -> str:
        """Absolute URL for a path relative to the base endpoint."""
        return f"{self.base_url}/{path.lstrip('/')}"

    def _build_headers(self, envelope: RequestEnvelope, authenticated: bool = True) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json'}
        headers.update(envelope.headers)

        token = self.token_storage.get_access_token() if authenticated else None
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return headers

    async def _execute(self, envelope: RequestEnvelope, authenticated: bool = True) -> Tuple[int, bytes]:
        """
        Issue one HTTP attempt for the envelope.

        Args:
            envelope: Request to send
            authenticated: Whether to attach the stored access token

        Returns:
            Tuple of (status code, raw body bytes)

        Raises:
            TransportError: If no response was obtained
        """
        await self._ensure_session()

        url = self.build_url(envelope.path)
        headers = self._build_headers(envelope, authenticated)
        body = envelope.json_body()
        data = json.dumps(body) if body is not None else None

        logger.debug(f"Making {envelope.method.value} request to {url}")

        try:
            async with self._session.request(
                method=envelope.method.value,
                url=url,
                data=data,
                headers=headers
            ) as response:
                return response.status, await response.read()

        except asyncio.TimeoutError as e:
            logger.warning(f"Request to {url} timed out")
            raise TransportError(
                f"Request to {envelope.path} timed out after {self.timeout.total}s",
                error_code=ErrorCode.NETWORK_TIMEOUT,
                cause=e
            )
        except (ClientError, OSError) as e:
            logger.warning(f"Network error calling {url}: {e}")
            raise TransportError(f"Request to {envelope.path} failed: {e}", cause=e)

    @staticmethod
    def _decode(status: int, raw: bytes, data_type: Optional[Type[Any]]) -> ApiResponse:
        if not raw or not raw.strip():
            raise DecodingError(
                f"empty response body (HTTP {status})",
                error_code=ErrorCode.DECODING_EMPTY_BODY
            )

        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodingError(f"invalid JSON (HTTP {status}): {e}", error_code=ErrorCode.DECODING_INVALID_JSON)

        try:
            return ApiResponse.from_payload(payload, data_type)
        except ValidationError as e:
            raise DecodingError(f"unexpected response shape (HTTP {status}): {e}")

    async def send(
        self,
        envelope: RequestEnvelope,
        data_type: Optional[Type[Any]] = None
    ) -> ApiResponse:
        """
        Send a request and decode the response envelope.

        Args:
            envelope: Request to send
            data_type: Expected shape of the envelope's ``data`` field

        Returns:
            Decoded response envelope (not necessarily a business success)

        Raises:
            TransportError: No response was obtained
            DecodingError: The body did not match the envelope shape
            UnauthorizedError: The session could not be restored by a refresh
        """
        status, raw = await self._execute(envelope)

        if status == 401:
            logger.info(f"Access token rejected for {envelope.path}, attempting refresh")

            failure = await self._refresh()
            if failure is not None:
                raise UnauthorizedError(
                    f"Session expired while calling {envelope.path}",
                    error_code=failure,
                    context={'path': envelope.path}
                )

            logger.info(f"Retrying {envelope.method.value} {envelope.path} with refreshed token")
            status, raw = await self._execute(envelope)

            if status == 401:
                logger.warning(f"Refreshed token rejected for {envelope.path}")
                if self.clear_on_refresh_failure:
                    self._clear_credentials("retry_rejected")
                raise UnauthorizedError(
                    f"Refreshed token rejected while calling {envelope.path}",
                    error_code=ErrorCode.AUTH_RETRY_REJECTED,
                    context={'path': envelope.path}
                )

        return self._decode(status, raw, data_type)

    async def send_unauthenticated(
        self,
        envelope: RequestEnvelope,
        data_type: Optional[Type[Any]] = None
    ) -> ApiResponse:
        """
        Send a request without a bearer token and decode the response.

        A 401 is decoded like any other status; no refresh is attempted.
        """
        status, raw = await self._execute(envelope, authenticated=False)
        return self._decode(status, raw, data_type)

    def store_token_pair(self, data: RefreshTokenResponseData) -> None:
        """Store a refreshed access token, and the refresh token if it was rotated."""
        self.token_storage.set_access_token(data.access_token)
        if data.refresh_token:
            self.token_storage.set_refresh_token(data.refresh_token)

    async def refresh_access_token(self) -> bool:
        """
        Exchange the stored refresh token for a new token pair.

        The new access token (and the refresh token, if the server rotated it)
        is written to the credential store before this returns.

        A missing refresh token leaves the store untouched.

        Returns:
            True if the store now holds a fresh access token
        """
        return await self._refresh(clear_if_missing=False) is None

    async def _refresh(self, clear_if_missing: bool = True) -> Optional[ErrorCode]:
        """Run the refresh round trip; returns None on success, else why it failed."""
        refresh_token = self.token_storage.get_refresh_token()
        if not refresh_token:
            logger.warning("No refresh token available")
            self._audit.log_token_refresh(success=False, failure_reason="missing_refresh_token")
            if clear_if_missing:
                self._clear_credentials("missing_refresh_token")
            return ErrorCode.AUTH_REFRESH_TOKEN_MISSING

        # Sent without the expired bearer token
        envelope = RequestEnvelope(
            path=REFRESH_TOKEN_PATH,
            method=HTTPMethod.POST,
            body=RefreshTokenRequest(refresh_token=refresh_token)
        )

        try:
            status, raw = await self._execute(envelope, authenticated=False)
        except TransportError as e:
            # The server never rejected the refresh token, so keep it
            logger.error(f"Token refresh failed: {e}")
            self._audit.log_token_refresh(success=False, failure_reason="transport")
            return e.error_code

        if status != 200:
            logger.error(f"Refresh token request failed with status: {status}")
            return self._reject_refresh(f"http_{status}")

        try:
            response = self._decode(status, raw, RefreshTokenResponseData)
        except DecodingError as e:
            logger.error(f"Token refresh response could not be decoded: {e.reason}")
            return self._reject_refresh("decoding")

        if not response.is_success or response.data is None:
            logger.error(f"Token refresh rejected: {response.message}")
            return self._reject_refresh(f"status_{response.status}")

        self.store_token_pair(response.data)

        self._audit.log_token_refresh(success=True)
        logger.info("Token refreshed successfully")
        return None

    def _reject_refresh(self, reason: str) -> ErrorCode:
        self._audit.log_token_refresh(success=False, failure_reason=reason)
        if self.clear_on_refresh_failure:
            self._clear_credentials("refresh_rejected")
        return ErrorCode.AUTH_REFRESH_REJECTED

    def _clear_credentials(self, reason: str) -> None:
        self.token_storage.clear()
        self._audit.log_logout(reason=reason)

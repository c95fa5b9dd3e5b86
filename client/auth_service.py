"""
Auth endpoint service for the Grocery Store auth client.

Thin wrappers over the API client for the backend's /auth endpoints. Login and
refresh also persist the returned token pair in the credential store.
"""

import logging

from client.api_client import GroceryAPIClient, REFRESH_TOKEN_PATH
from shared.interfaces import IAuthService, ICredentialStore
from shared.logging_config import AuditLogger
from shared.models import (
    ApiResponse, HTTPMethod, RequestEnvelope,
    LoginRequest, LoginResponseData,
    RegisterRequest, RegisterResponseData,
    ActivateAccountRequest, EmptyResponse,
    RefreshTokenRequest, RefreshTokenResponseData,
    ForgotPasswordRequest, ForgotPasswordResponseData,
    ResetPasswordRequest
)

logger = logging.getLogger(__name__)


class AuthService(IAuthService):
    """Calls the auth endpoints and keeps the credential store in step."""

    def __init__(self, api_client: GroceryAPIClient, token_storage: ICredentialStore):
        self.client = api_client
        self.token_storage = token_storage
        self._audit = AuditLogger()

    async def register(self, request: RegisterRequest) -> ApiResponse:
        """POST /auth/register"""
        return await self.client.send(
            RequestEnvelope(path="/auth/register", method=HTTPMethod.POST, body=request),
            RegisterResponseData
        )

    async def login(self, request: LoginRequest) -> ApiResponse:
        """
        POST /auth/login

        On a successful envelope the returned tokens replace whatever was stored.
        """
        response = await self.client.send(
            RequestEnvelope(path="/auth/login", method=HTTPMethod.POST, body=request),
            LoginResponseData
        )

        if response.is_success and response.data is not None:
            self.token_storage.set_access_token(response.data.access_token)
            self.token_storage.set_refresh_token(response.data.refresh_token)
            self._audit.log_authentication(response.data.username, success=True)
        else:
            self._audit.log_authentication(request.username, success=False, failure_reason=response.message)

        return response

    async def activate_account(self, request: ActivateAccountRequest) -> ApiResponse:
        """PATCH /auth/activate"""
        return await self.client.send(
            RequestEnvelope(path="/auth/activate", method=HTTPMethod.PATCH, body=request),
            EmptyResponse
        )

    async def refresh_token(self, request: RefreshTokenRequest) -> ApiResponse:
        """
        POST /auth/refresh-token

        Sent without the bearer token; a 401 here is returned, not refreshed.
        """
        response = await self.client.send_unauthenticated(
            RequestEnvelope(path=REFRESH_TOKEN_PATH, method=HTTPMethod.POST, body=request),
            RefreshTokenResponseData
        )

        if response.is_success and response.data is not None:
            self.client.store_token_pair(response.data)

        return response

    async def forgot_password(self, request: ForgotPasswordRequest) -> ApiResponse:
        """POST /auth/forgot-password"""
        return await self.client.send(
            RequestEnvelope(path="/auth/forgot-password", method=HTTPMethod.POST, body=request),
            ForgotPasswordResponseData
        )

    async def reset_password(self, request: ResetPasswordRequest) -> ApiResponse:
        """PATCH /auth/reset-password"""
        return await self.client.send(
            RequestEnvelope(path="/auth/reset-password", method=HTTPMethod.PATCH, body=request),
            EmptyResponse
        )

    def is_authenticated(self) -> bool:
        return self.token_storage.is_authenticated()

    def logout(self) -> bool:
        """Forget the stored session."""
        logger.info("Logging out and clearing stored tokens")
        cleared = self.token_storage.clear()
        self._audit.log_logout()
        return cleared

"""
Core interfaces for the Grocery Store auth client.

This module defines the abstract interfaces that components must implement
so that storage backends and services can be swapped for fakes in tests.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .models import (
    ApiResponse, Credentials, LoginRequest, RegisterRequest,
    ActivateAccountRequest, RefreshTokenRequest, ForgotPasswordRequest,
    ResetPasswordRequest
)


class ICredentialStore(ABC):
    """
    Interface for persisting the access/refresh token pair.

    Implementations must never raise from these methods: storage failures
    are reported as absent values (reads) or a False result (writes).
    """

    @abstractmethod
    def get_access_token(self) -> Optional[str]:
        """Get the stored access token."""
        pass

    @abstractmethod
    def get_refresh_token(self) -> Optional[str]:
        """Get the stored refresh token."""
        pass

    @abstractmethod
    def set_access_token(self, value: Optional[str]) -> bool:
        """Store (or delete, when None) the access token."""
        pass

    @abstractmethod
    def set_refresh_token(self, value: Optional[str]) -> bool:
        """Store (or delete, when None) the refresh token."""
        pass

    @abstractmethod
    def clear(self) -> bool:
        """Delete both tokens."""
        pass

    def is_authenticated(self) -> bool:
        """True iff an access token is present."""
        return self.get_access_token() is not None

    def get_credentials(self) -> Credentials:
        """Snapshot of both tokens."""
        return Credentials(
            access_token=self.get_access_token(),
            refresh_token=self.get_refresh_token()
        )


class IAuthService(ABC):
    """Interface for the backend auth endpoints."""

    @abstractmethod
    async def register(self, request: RegisterRequest) -> ApiResponse:
        """POST /auth/register"""
        pass

    @abstractmethod
    async def login(self, request: LoginRequest) -> ApiResponse:
        """POST /auth/login"""
        pass

    @abstractmethod
    async def activate_account(self, request: ActivateAccountRequest) -> ApiResponse:
        """PATCH /auth/activate"""
        pass

    @abstractmethod
    async def refresh_token(self, request: RefreshTokenRequest) -> ApiResponse:
        """POST /auth/refresh-token"""
        pass

    @abstractmethod
    async def forgot_password(self, request: ForgotPasswordRequest) -> ApiResponse:
        """POST /auth/forgot-password"""
        pass

    @abstractmethod
    async def reset_password(self, request: ResetPasswordRequest) -> ApiResponse:
        """PATCH /auth/reset-password"""
        pass

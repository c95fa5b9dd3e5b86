"""
Core data models for the Grocery Store auth client.

This module defines the wire contract shared by every backend endpoint (the
response envelope and its payload shapes), the request bodies for the auth
endpoints, and the immutable request envelope consumed by the API client.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Generic, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class HTTPMethod(Enum):
    """HTTP methods used against the backend."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class WireModel(BaseModel):
    """Base for models exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True)


# Response envelope

class FieldError(WireModel):
    field: str
    error_message: str = Field(..., alias="errorMessage")
    rejected_value: Optional[str] = Field(None, alias="rejectedValue")

    @field_validator("rejected_value", mode="before")
    @classmethod
    def stringify_rejected_value(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ApiResponse(WireModel, Generic[T]):
    """
    Uniform wrapper returned by every endpoint.

    A decoded envelope is not necessarily a business success: callers inspect
    ``status`` and ``errors`` themselves.
    """

    status: int
    message: str
    data: Optional[T] = None
    timestamp: str
    errors: Optional[List[FieldError]] = None

    @classmethod
    def from_payload(cls, payload: Any, data_type: Optional[Type[Any]] = None) -> "ApiResponse":
        """
        Validate a decoded JSON value into an envelope.

        Args:
            payload: Decoded JSON body
            data_type: Expected shape of ``data`` (None accepts any JSON value)

        Returns:
            The typed envelope

        Raises:
            pydantic.ValidationError: If the payload does not match the shape
        """
        model = ApiResponse[data_type] if data_type is not None else ApiResponse[Any]
        return model.model_validate(payload)

    def to_payload(self) -> Dict[str, Any]:
        """Encode the envelope back into its wire representation."""
        return self.model_dump(by_alias=True, mode="json")

    @property
    def is_success(self) -> bool:
        return self.status == 200

    def field_errors(self) -> Dict[str, str]:
        """Map of field name to error message for validation failures."""
        return {error.field: error.error_message for error in self.errors or []}


# Response payloads

class LoginResponseData(WireModel):
    username: str
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class RegisterResponseData(WireModel):
    user_id: str = Field(..., alias="userId")
    email: str
    message: str


class RefreshTokenResponseData(WireModel):
    access_token: str = Field(..., alias="accessToken")
    # Absent when the backend does not rotate refresh tokens
    refresh_token: Optional[str] = Field(None, alias="refreshToken")


class ForgotPasswordResponseData(WireModel):
    message: str


class EmptyResponse(WireModel):
    """Payload of endpoints that return no data."""


# Request bodies

class LoginRequest(WireModel):
    username: str
    password: str


class RegisterRequest(WireModel):
    username: str
    email: str
    password: str


class ActivateAccountRequest(WireModel):
    email: str
    activation_code: str = Field(..., alias="activationCode")


class RefreshTokenRequest(WireModel):
    refresh_token: str = Field(..., alias="refreshToken")


class ForgotPasswordRequest(WireModel):
    email: str


class ResetPasswordRequest(WireModel):
    email: str
    reset_password_code: str = Field(..., alias="resetPasswordCode")
    new_password: str = Field(..., alias="newPassword")


# Client-side structures

@dataclass(frozen=True)
class RequestEnvelope:
    """
    Immutable description of a single API call.

    The same envelope is replayed verbatim after a token refresh; only the
    Authorization header differs between attempts.
    """
    path: str
    method: HTTPMethod = HTTPMethod.GET
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.method, HTTPMethod):
            object.__setattr__(self, "method", HTTPMethod(str(self.method).upper()))
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    def with_header(self, name: str, value: str) -> "RequestEnvelope":
        """Return a copy with one header added or replaced."""
        headers = dict(self.headers)
        headers[name] = value
        return replace(self, headers=headers)

    def json_body(self) -> Any:
        """Body in a form accepted by ``json.dumps``."""
        if isinstance(self.body, BaseModel):
            return self.body.model_dump(by_alias=True, mode="json")
        return self.body


@dataclass
class Credentials:
    """Snapshot of the stored token pair."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.access_token is not None and self.refresh_token is not None

"""
Presentation-facing auth flows.

Each flow runs one auth call and turns its outcome into a FlowResult that a UI
(or the CLI) can render. Progress is reported through an optional asyncio.Queue
so the presentation layer is not tied to a particular thread or event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from shared.exceptions import RequestError
from shared.interfaces import IAuthService
from shared.logging_config import log_structured_error
from shared.models import (
    ApiResponse, LoginRequest, RegisterRequest, ActivateAccountRequest,
    ForgotPasswordRequest, ResetPasswordRequest
)

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


class FlowState(Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class FlowResult:
    state: FlowState
    message: Optional[str] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    value: Any = None
    error: Optional[RequestError] = None

    @property
    def ok(self) -> bool:
        return self.state == FlowState.SUCCESS


class AuthFlow(ABC):
    """
    Base class for a single submit-and-report auth interaction.

    Subclasses implement ``_call`` (the service call) and may override
    ``_success_value`` (what a successful envelope means for the caller).
    Flows with ``requires_data`` set only succeed when the envelope carries a
    payload; a bare 200 is reported as an error with the server's message.
    """

    requires_data = False

    def __init__(self, auth_service: IAuthService, updates: Optional[asyncio.Queue] = None):
        self.auth_service = auth_service
        self.updates = updates
        self.state = FlowState.IDLE

    @abstractmethod
    async def _call(self) -> ApiResponse:
        pass

    def _success_value(self, response: ApiResponse) -> Any:
        return None

    async def _publish(self, result: FlowResult) -> FlowResult:
        self.state = result.state
        if self.updates is not None:
            await self.updates.put(result)
        return result

    async def submit(self) -> FlowResult:
        """
        Run the flow.

        Returns:
            The final result (SUCCESS or ERROR); SUBMITTING is only published
        """
        await self._publish(FlowResult(FlowState.SUBMITTING))

        try:
            response = await self._call()
        except RequestError as e:
            log_structured_error(logger, e)
            return await self._publish(
                FlowResult(FlowState.ERROR, message=e.user_message, error=e)
            )

        if response.is_success and (response.data is not None or not self.requires_data):
            return await self._publish(
                FlowResult(FlowState.SUCCESS, message=response.message, value=self._success_value(response))
            )

        return await self._publish(FlowResult(
            FlowState.ERROR,
            message=response.message or GENERIC_ERROR_MESSAGE,
            field_errors=response.field_errors()
        ))


class LoginFlow(AuthFlow):
    requires_data = True

    def __init__(self, auth_service: IAuthService, username: str, password: str, updates: Optional[asyncio.Queue] = None):
        super().__init__(auth_service, updates)
        self.username = username
        self.password = password

    async def _call(self) -> ApiResponse:
        return await self.auth_service.login(LoginRequest(username=self.username, password=self.password))

    def _success_value(self, response: ApiResponse) -> Any:
        return response.data.username


class RegisterFlow(AuthFlow):
    requires_data = True

    def __init__(
        self,
        auth_service: IAuthService,
        username: str,
        email: str,
        password: str,
        updates: Optional[asyncio.Queue] = None
    ):
        super().__init__(auth_service, updates)
        self.username = username
        self.email = email
        self.password = password

    async def _call(self) -> ApiResponse:
        return await self.auth_service.register(
            RegisterRequest(username=self.username, email=self.email, password=self.password)
        )

    def _success_value(self, response: ApiResponse) -> Any:
        return response.data.email


class ActivateAccountFlow(AuthFlow):
    def __init__(self, auth_service: IAuthService, email: str, activation_code: str, updates: Optional[asyncio.Queue] = None):
        super().__init__(auth_service, updates)
        self.email = email
        self.activation_code = activation_code

    async def _call(self) -> ApiResponse:
        return await self.auth_service.activate_account(
            ActivateAccountRequest(email=self.email, activation_code=self.activation_code)
        )


class ForgotPasswordFlow(AuthFlow):
    def __init__(self, auth_service: IAuthService, email: str, updates: Optional[asyncio.Queue] = None):
        super().__init__(auth_service, updates)
        self.email = email

    async def _call(self) -> ApiResponse:
        return await self.auth_service.forgot_password(ForgotPasswordRequest(email=self.email))

    def _success_value(self, response: ApiResponse) -> Any:
        # Server-side instructions, e.g. where the reset code was sent
        return response.data.message if response.data else response.message


class ResetPasswordFlow(AuthFlow):
    def __init__(
        self,
        auth_service: IAuthService,
        email: str,
        reset_password_code: str,
        new_password: str,
        updates: Optional[asyncio.Queue] = None
    ):
        super().__init__(auth_service, updates)
        self.email = email
        self.reset_password_code = reset_password_code
        self.new_password = new_password

    async def _call(self) -> ApiResponse:
        return await self.auth_service.reset_password(ResetPasswordRequest(
            email=self.email,
            reset_password_code=self.reset_password_code,
            new_password=self.new_password
        ))

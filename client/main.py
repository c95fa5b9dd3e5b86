"""
Command-line entry point for the Grocery Store auth client.

Runs one auth operation against the backend (login, register, activation,
password reset, token refresh) or inspects/clears the stored session.
"""

import sys
import argparse
import asyncio
import getpass
import json
import logging
from pathlib import Path
from typing import Optional

from client.api_client import GroceryAPIClient
from client.auth.token_storage import SecureTokenStorage, InMemoryTokenStorage
from client.auth_flows import (
    FlowResult, LoginFlow, RegisterFlow, ActivateAccountFlow,
    ForgotPasswordFlow, ResetPasswordFlow
)
from client.auth_service import AuthService
from client.config import ClientConfiguration
from shared.exceptions import ConfigurationError, TransportError, DecodingError, UnauthorizedError
from shared.interfaces import ICredentialStore
from shared.logging_config import AuditLogger, LogFormat, LogLevel, setup_logging

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_UNAUTHORIZED = 2
EXIT_TRANSPORT = 3
EXIT_DECODING = 4
EXIT_CONFIG = 5
EXIT_INTERRUPTED = 130


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="grocery-auth",
        description="Grocery Store auth client",
        epilog="""
Examples:
  %(prog)s login --username alice        # Prompts for the password
  %(prog)s status --json                 # Show whether a session is stored
  %(prog)s refresh                       # Exchange the refresh token now
  %(prog)s logout                        # Forget stored tokens
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument("--config", type=str, metavar="FILE",
                              help="Path to configuration file")
    config_group.add_argument("--base-url", type=str, metavar="URL",
                              help="Override backend base URL")
    config_group.add_argument("--timeout", type=float, metavar="SECONDS",
                              help="Request timeout in seconds")
    config_group.add_argument("--token-file", type=str, metavar="FILE",
                              help="Encrypted token file used when no keyring is available")
    config_group.add_argument("--no-persist", action="store_true",
                              help="Keep tokens in memory only for this run")

    output_group = parser.add_argument_group('Output')
    output_group.add_argument("--json", action="store_true",
                              help="Print results as JSON")
    output_group.add_argument("--verbose", "-v", action="store_true",
                              help="Enable verbose output")
    output_group.add_argument("--quiet", "-q", action="store_true",
                              help="Suppress non-error output")

    debug_group = parser.add_argument_group('Debug')
    debug_group.add_argument("--debug", action="store_true",
                             help="Enable debug logging")
    debug_group.add_argument("--log-file", type=str, metavar="FILE",
                             help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Log in and store the session tokens")
    login.add_argument("--username", required=True)
    login.add_argument("--password", help="Prompted for when omitted")

    register = subparsers.add_parser("register", help="Create an account")
    register.add_argument("--username", required=True)
    register.add_argument("--email", required=True)
    register.add_argument("--password", help="Prompted for when omitted")

    activate = subparsers.add_parser("activate", help="Activate an account with the emailed code")
    activate.add_argument("--email", required=True)
    activate.add_argument("--code", required=True, help="Activation code")

    forgot = subparsers.add_parser("forgot-password", help="Request a password reset code")
    forgot.add_argument("--email", required=True)

    reset = subparsers.add_parser("reset-password", help="Set a new password with the reset code")
    reset.add_argument("--email", required=True)
    reset.add_argument("--code", required=True, help="Reset password code")
    reset.add_argument("--new-password", help="Prompted for when omitted")

    subparsers.add_parser("refresh", help="Refresh the access token now")
    subparsers.add_parser("status", help="Show whether a session is stored")
    subparsers.add_parser("logout", help="Clear stored tokens")

    args = parser.parse_args(argv)

    if args.quiet and args.verbose:
        parser.error("--quiet and --verbose are mutually exclusive")

    return args


def configure_logging(args, config: ClientConfiguration) -> None:
    """Configure logging from command line arguments and configuration."""
    if args.debug:
        level = LogLevel.DEBUG
    elif args.verbose:
        level = LogLevel.INFO
    elif args.quiet or args.json:
        level = LogLevel.ERROR
    else:
        try:
            level = LogLevel(config.get_log_level())
        except ValueError:
            level = LogLevel.WARNING

    try:
        log_format = LogFormat(config.get_log_format())
    except ValueError:
        log_format = LogFormat.STANDARD

    setup_logging(
        log_level=level,
        log_format=LogFormat.DETAILED if args.debug else log_format,
        log_file=args.log_file or config.get_log_file()
    )


def build_configuration(args) -> ClientConfiguration:
    config = ClientConfiguration(args.config)
    config.set_override('base_url', args.base_url)
    config.set_override('timeout', args.timeout)
    config.set_override('token_file', args.token_file)
    return config


def build_token_storage(args, config: ClientConfiguration) -> ICredentialStore:
    if args.no_persist:
        return InMemoryTokenStorage()

    token_file = config.get_token_file()
    return SecureTokenStorage(
        service_name=config.get_keyring_service(),
        storage_path=Path(token_file).expanduser() if token_file else None
    )


def _prompt_secret(value: Optional[str], prompt: str) -> str:
    return value if value is not None else getpass.getpass(prompt)


def print_result(args, payload: dict) -> None:
    if args.json:
        print(json.dumps(payload, default=str))
        return

    if args.quiet and payload.get('ok'):
        return

    message = payload.get('message') or ('OK' if payload.get('ok') else 'Failed')
    print(message)
    for field_name, error in payload.get('field_errors', {}).items():
        print(f"  {field_name}: {error}")


def _flow_payload(result: FlowResult) -> dict:
    payload = {
        'ok': result.ok,
        'state': result.state.value,
        'message': result.message,
        'field_errors': result.field_errors,
        'value': result.value
    }
    if result.error is not None:
        payload['error'] = dict(result.error.to_dict()['error'], kind=result.error.kind)
    return payload


def _flow_exit_code(result: FlowResult) -> int:
    if result.ok:
        return EXIT_SUCCESS
    if isinstance(result.error, UnauthorizedError):
        return EXIT_UNAUTHORIZED
    if isinstance(result.error, TransportError):
        return EXIT_TRANSPORT
    if isinstance(result.error, DecodingError):
        return EXIT_DECODING
    return EXIT_FAILURE


async def run_command(args, config: ClientConfiguration, storage: ICredentialStore) -> int:
    """Run the selected subcommand with one client and one credential store."""
    if args.command == "status":
        credentials = storage.get_credentials()
        print_result(args, {
            'ok': True,
            'authenticated': credentials.access_token is not None,
            'refresh_token_stored': credentials.refresh_token is not None,
            'message': "Authenticated" if credentials.access_token else "Not authenticated"
        })
        return EXIT_SUCCESS

    if args.command == "logout":
        cleared = storage.clear()
        AuditLogger().log_logout()
        print_result(args, {'ok': cleared, 'message': "Logged out" if cleared else "Failed to clear tokens"})
        return EXIT_SUCCESS if cleared else EXIT_FAILURE

    async with GroceryAPIClient(
        base_url=config.get_base_url(),
        token_storage=storage,
        timeout=config.get_timeout(),
        clear_on_refresh_failure=config.should_clear_on_refresh_failure()
    ) as api_client:
        service = AuthService(api_client, storage)

        if args.command == "refresh":
            refreshed = await api_client.refresh_access_token()
            print_result(args, {
                'ok': refreshed,
                'message': "Token refreshed" if refreshed else "Session expired. Please log in again."
            })
            return EXIT_SUCCESS if refreshed else EXIT_UNAUTHORIZED

        if args.command == "login":
            flow = LoginFlow(service, args.username, _prompt_secret(args.password, "Password: "))
        elif args.command == "register":
            flow = RegisterFlow(service, args.username, args.email, _prompt_secret(args.password, "Password: "))
        elif args.command == "activate":
            flow = ActivateAccountFlow(service, args.email, args.code)
        elif args.command == "forgot-password":
            flow = ForgotPasswordFlow(service, args.email)
        elif args.command == "reset-password":
            flow = ResetPasswordFlow(
                service, args.email, args.code,
                _prompt_secret(args.new_password, "New password: ")
            )
        else:
            raise ValueError(f"Unknown command: {args.command}")

        result = await flow.submit()
        print_result(args, _flow_payload(result))
        return _flow_exit_code(result)


def main(argv=None) -> int:
    """Main entry point for the client."""
    args = parse_arguments(argv)

    try:
        config = build_configuration(args)
        configure_logging(args, config)
        config.validate()

        storage = build_token_storage(args, config)
        return asyncio.run(run_command(args, config, storage))

    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_CONFIG
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == "__main__":
    sys.exit(main())

"""
Tests for the command-line entry point.
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from client import main as cli
from client.auth_flows import FlowResult, FlowState
from client.auth.token_storage import InMemoryTokenStorage
from shared.exceptions import DecodingError, TransportError, UnauthorizedError


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("client.main.setup_logging"):
        yield


def _base_args(tmp_path):
    return ["--config", str(tmp_path / "missing.conf"), "--no-persist", "--json"]


def test_status_without_session(tmp_path, capsys):
    exit_code = cli.main(_base_args(tmp_path) + ["status"])

    assert exit_code == cli.EXIT_SUCCESS
    output = json.loads(capsys.readouterr().out)
    assert output["authenticated"] is False
    assert output["refresh_token_stored"] is False


def test_invalid_base_url_is_a_configuration_error(tmp_path, capsys):
    exit_code = cli.main(_base_args(tmp_path) + ["--base-url", "nowhere", "status"])

    assert exit_code == cli.EXIT_CONFIG
    assert "Configuration error" in capsys.readouterr().err


def test_quiet_and_verbose_are_exclusive():
    with pytest.raises(SystemExit):
        cli.parse_arguments(["-q", "-v", "status"])


def test_login_prompts_for_password(tmp_path, capsys):
    storage = InMemoryTokenStorage()
    flow_result = FlowResult(FlowState.SUCCESS, message="Login successful", value="alice")

    with patch("client.main.build_token_storage", return_value=storage), \
            patch("client.main.getpass.getpass", return_value="secret123") as prompt, \
            patch("client.main.LoginFlow") as login_flow:
        login_flow.return_value.submit = AsyncMock(return_value=flow_result)

        exit_code = cli.main(_base_args(tmp_path) + ["login", "--username", "alice"])

    assert exit_code == cli.EXIT_SUCCESS
    prompt.assert_called_once()
    assert login_flow.call_args.args[1:] == ("alice", "secret123")
    assert json.loads(capsys.readouterr().out)["value"] == "alice"


def test_logout_clears_tokens(tmp_path):
    storage = InMemoryTokenStorage("A1", "R1")

    with patch("client.main.build_token_storage", return_value=storage):
        exit_code = cli.main(_base_args(tmp_path) + ["logout"])

    assert exit_code == cli.EXIT_SUCCESS
    assert not storage.is_authenticated()


@pytest.mark.parametrize("error, expected_code", [
    (UnauthorizedError(), cli.EXIT_UNAUTHORIZED),
    (TransportError("connection refused"), cli.EXIT_TRANSPORT),
    (DecodingError("bad json"), cli.EXIT_DECODING),
    (None, cli.EXIT_FAILURE),
])
def test_failed_flow_exit_codes(tmp_path, capsys, error, expected_code):
    flow_result = FlowResult(FlowState.ERROR, message="Failed", error=error)

    with patch("client.main.LoginFlow") as login_flow:
        login_flow.return_value.submit = AsyncMock(return_value=flow_result)

        exit_code = cli.main(_base_args(tmp_path) + ["login", "--username", "alice", "--password", "x"])

    assert exit_code == expected_code
    output = json.loads(capsys.readouterr().out)
    assert output["ok"] is False
    if error is not None:
        assert output["error"]["kind"] == error.kind
        assert output["error"]["code"] == error.error_code.value


@pytest.mark.parametrize("command, flow_name, expected_args", [
    (["register", "--username", "bob", "--email", "bob@example.com", "--password", "password1"],
     "RegisterFlow", ("bob", "bob@example.com", "password1")),
    (["activate", "--email", "bob@example.com", "--code", "123456"],
     "ActivateAccountFlow", ("bob@example.com", "123456")),
    (["forgot-password", "--email", "bob@example.com"],
     "ForgotPasswordFlow", ("bob@example.com",)),
    (["reset-password", "--email", "bob@example.com", "--code", "654321", "--new-password", "newpassword"],
     "ResetPasswordFlow", ("bob@example.com", "654321", "newpassword")),
])
def test_subcommands_build_their_flow(tmp_path, command, flow_name, expected_args):
    with patch(f"client.main.{flow_name}") as flow:
        flow.return_value.submit = AsyncMock(return_value=FlowResult(FlowState.SUCCESS))

        exit_code = cli.main(_base_args(tmp_path) + command)

    assert exit_code == cli.EXIT_SUCCESS
    assert flow.call_args.args[1:] == expected_args


@pytest.mark.parametrize("refreshed, expected_code", [
    (True, cli.EXIT_SUCCESS),
    (False, cli.EXIT_UNAUTHORIZED),
])
def test_refresh_command(tmp_path, capsys, refreshed, expected_code):
    with patch("client.main.GroceryAPIClient.refresh_access_token", new=AsyncMock(return_value=refreshed)):
        exit_code = cli.main(_base_args(tmp_path) + ["refresh"])

    assert exit_code == expected_code
    assert json.loads(capsys.readouterr().out)["ok"] is refreshed


def test_logout_does_not_open_a_client(tmp_path):
    storage = InMemoryTokenStorage("A1", "R1")

    with patch("client.main.build_token_storage", return_value=storage), \
            patch("client.main.GroceryAPIClient") as api_client:
        exit_code = cli.main(_base_args(tmp_path) + ["logout"])

    assert exit_code == cli.EXIT_SUCCESS
    api_client.assert_not_called()

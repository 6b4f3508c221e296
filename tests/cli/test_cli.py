"""CLI tests for the outlook-mcp commands."""

from datetime import timedelta
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from outlook_mcp.__version__ import __version__
from outlook_mcp.auth import TokenStatus
from outlook_mcp.cli.main import main
from outlook_mcp.errors import AuthenticationFailed
from tests.helpers import make_record


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    """Environment with a client ID and a temporary token path."""
    return {
        "OUTLOOK_CLIENT_ID": "test-client",
        "OUTLOOK_MCP_TOKEN_PATH": str(tmp_path / "tokens.json"),
    }


@pytest.fixture
def mock_manager() -> MagicMock:
    manager = MagicMock()
    manager.cached_status.return_value = TokenStatus.MISSING
    manager.sign_in = AsyncMock(return_value=make_record())
    manager.sign_out = AsyncMock(return_value=True)
    return manager


@pytest.mark.unit
class TestVersion:
    def test_should_print_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output


@pytest.mark.unit
class TestSetupCommand:
    """Tests for the setup CLI command."""

    def test_should_show_error_without_client_id(
        self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify error shown when no client ID is configured."""
        monkeypatch.delenv("OUTLOOK_CLIENT_ID", raising=False)
        monkeypatch.delenv("CLIENT_ID", raising=False)

        result = cli_runner.invoke(main, ["setup"])

        assert result.exit_code == 1
        assert "Client ID required" in result.output

    def test_should_sign_in_and_report_account(
        self, cli_runner: CliRunner, env: dict[str, str], mock_manager: MagicMock
    ) -> None:
        """Verify setup runs the interactive sign-in."""
        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ):
            result = cli_runner.invoke(main, ["setup"], env=env)

        assert result.exit_code == 0
        mock_manager.sign_in.assert_awaited_once()
        assert "Browser will open" in result.output
        assert "Authentication successful" in result.output
        assert "user@contoso.com" in result.output

    def test_should_accept_client_id_option(
        self, cli_runner: CliRunner, tmp_path: Path, mock_manager: MagicMock
    ) -> None:
        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ) as mock_build:
            result = cli_runner.invoke(
                main,
                ["setup", "--client-id=from-option", "--tenant-id=contoso"],
                env={"OUTLOOK_MCP_TOKEN_PATH": str(tmp_path / "tokens.json")},
            )

        assert result.exit_code == 0
        settings = mock_build.call_args.args[0]
        assert settings.client_id == "from-option"
        assert settings.tenant_id == "contoso"

    def test_should_skip_when_already_authenticated(
        self, cli_runner: CliRunner, env: dict[str, str], mock_manager: MagicMock
    ) -> None:
        """Verify declining re-authentication leaves the cache alone."""
        mock_manager.cached_status.return_value = TokenStatus.VALID

        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ):
            result = cli_runner.invoke(main, ["setup"], env=env, input="n\n")

        assert "Already authenticated" in result.output
        mock_manager.sign_in.assert_not_awaited()

    def test_should_force_sign_in(
        self, cli_runner: CliRunner, env: dict[str, str], mock_manager: MagicMock
    ) -> None:
        mock_manager.cached_status.return_value = TokenStatus.VALID

        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ):
            result = cli_runner.invoke(main, ["setup", "--force"], env=env)

        assert result.exit_code == 0
        mock_manager.sign_in.assert_awaited_once()

    def test_should_exit_on_failed_sign_in(
        self, cli_runner: CliRunner, env: dict[str, str], mock_manager: MagicMock
    ) -> None:
        mock_manager.sign_in.side_effect = AuthenticationFailed("Sign-in cancelled: timeout")

        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ):
            result = cli_runner.invoke(main, ["setup"], env=env)

        assert result.exit_code == 1
        assert "Authentication failed: Sign-in cancelled" in result.output


@pytest.mark.unit
class TestLogoutCommand:
    """Tests for the logout CLI command."""

    def test_should_report_removed_credential(
        self, cli_runner: CliRunner, env: dict[str, str], mock_manager: MagicMock
    ) -> None:
        with patch(
            "outlook_mcp.server.outlook_server.build_token_manager", return_value=mock_manager
        ):
            result = cli_runner.invoke(main, ["logout"], env=env)

        assert result.exit_code == 0
        assert "Signed out" in result.output

    def test_should_report_nothing_to_remove(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        """Verify logout against a real empty cache."""
        result = cli_runner.invoke(main, ["logout"], env=env)

        assert result.exit_code == 0
        assert "No cached credential" in result.output


@pytest.mark.unit
class TestDoctorCommand:
    """Tests for the doctor CLI command."""

    def test_should_fail_when_not_authenticated(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        result = cli_runner.invoke(main, ["doctor"], env=env)

        assert result.exit_code == 1
        assert "msal installed" in result.output
        assert "Client ID: test-client" in result.output
        assert "Not authenticated" in result.output

    def test_should_report_ready_with_valid_token(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        from outlook_mcp.auth import TokenStorage

        TokenStorage(Path(env["OUTLOOK_MCP_TOKEN_PATH"])).store("test-client@common", make_record())

        result = cli_runner.invoke(main, ["doctor"], env=env)

        assert result.exit_code == 0
        assert "✓ Authenticated" in result.output
        assert "Account: user@contoso.com" in result.output
        assert "Ready to use" in result.output

    def test_should_report_refreshable_expired_token(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        from outlook_mcp.auth import TokenStorage

        TokenStorage(Path(env["OUTLOOK_MCP_TOKEN_PATH"])).store(
            "test-client@common", make_record(expires_in=timedelta(hours=-1))
        )

        result = cli_runner.invoke(main, ["doctor"], env=env)

        assert result.exit_code == 0
        assert "Token expired (can be refreshed)" in result.output

    def test_should_fail_when_expired_token_has_no_refresh_token(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        """Verify an expired token without a refresh token is not called refreshable."""
        from outlook_mcp.auth import TokenStorage

        TokenStorage(Path(env["OUTLOOK_MCP_TOKEN_PATH"])).store(
            "test-client@common",
            make_record(expires_in=timedelta(hours=-1), refresh_token=None),
        )

        result = cli_runner.invoke(main, ["doctor"], env=env)

        assert result.exit_code == 1
        assert "cannot be refreshed" in result.output
        assert "can be refreshed)" not in result.output
        assert "Ready to use" not in result.output


@pytest.mark.unit
class TestMcpCommand:
    """Tests for the mcp CLI command."""

    def test_should_refuse_to_start_without_credentials(
        self, cli_runner: CliRunner, env: dict[str, str]
    ) -> None:
        """Verify the server does not start when sign-in is impossible."""
        env = {**env, "OUTLOOK_MCP_ALLOW_INTERACTIVE": "false"}

        with patch("outlook_mcp.server.main") as mock_server_main:
            result = cli_runner.invoke(main, ["mcp"], env=env)

        assert result.exit_code == 1
        mock_server_main.assert_not_called()

    def test_should_start_server(self, cli_runner: CliRunner, env: dict[str, str]) -> None:
        with patch("outlook_mcp.server.main") as mock_server_main:
            result = cli_runner.invoke(main, ["mcp"], env=env)

        assert result.exit_code == 0
        mock_server_main.assert_called_once()

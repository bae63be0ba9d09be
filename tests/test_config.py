"""Tests for environment variable configuration."""

import importlib
import os
from collections.abc import Generator
from pathlib import Path

import pytest
from pytest_mock import MockerFixture


class TestEnvironmentVariableConfiguration:
    """Tests that environment variables correctly configure the server."""

    @pytest.fixture(autouse=True)
    def reload_server_after_test(self) -> Generator[None, None, None]:
        """Reload server module after each test to restore default config."""
        yield
        # After test completes (and mocker restores os.environ), reload to get defaults
        import server

        importlib.reload(server)

    def test_default_values(self, mocker: MockerFixture) -> None:
        """
        Given no environment variables are set
        When the server module is loaded
        Then all configuration values should use their defaults
        """
        import server

        for name in (
            "COACH_DIR",
            "COACH_MAX_ENTRY_SIZE",
            "COACH_CARRY_DAYS",
            "COACH_LOG_LEVEL",
        ):
            mocker.patch.dict(os.environ, {name: ""})
            del os.environ[name]
        importlib.reload(server)

        assert server.COACH_DIR == Path.home() / "coach"
        assert server.MAX_ENTRY_SIZE == 8 * 1024
        assert server.CARRY_DAYS == 14
        assert server.LOG_LEVEL == "WARNING"

    def test_custom_values_from_environment(
        self, mocker: MockerFixture
    ) -> None:
        """
        Given custom environment variables are set
        When the server module is loaded
        Then all configuration values should use the custom values
        """
        import server

        custom_env = {
            "COACH_DIR": "/my/coach",
            "COACH_MAX_ENTRY_SIZE": "1024",
            "COACH_CARRY_DAYS": "3",
            "COACH_LOG_LEVEL": "debug",
        }
        mocker.patch.dict(os.environ, custom_env)
        importlib.reload(server)

        assert server.COACH_DIR == Path("/my/coach")
        assert server.MAX_ENTRY_SIZE == 1024
        assert server.CARRY_DAYS == 3
        assert server.LOG_LEVEL == "DEBUG"

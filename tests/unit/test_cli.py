"""Tests for command-line argument parsing."""

from pathlib import Path

import pytest

from keepwarm.cli import parse_args


class TestParseArgs:
    """Tests for parse_args."""

    def test_defaults_leave_environment_in_charge(self) -> None:
        parsed = parse_args([])

        assert parsed.url is None
        assert parsed.interval_minutes is None
        assert parsed.timeout_seconds is None
        assert parsed.log_level is None
        assert parsed.threshold is None
        assert parsed.timezone is None
        assert parsed.persist is False
        assert parsed.state_file is None
        assert parsed.webhook_url is None
        assert parsed.env_file is None
        assert parsed.once is False
        assert parsed.resume is False

    def test_all_options(self) -> None:
        parsed = parse_args(
            [
                "--url",
                "https://example.com/",
                "--interval-minutes",
                "2.5",
                "--timeout-seconds",
                "7",
                "--log-level",
                "debug",
                "--threshold",
                "4",
                "--timezone",
                "Europe/Paris",
                "--persist",
                "--state-file",
                "/tmp/keepwarm.json",
                "--webhook-url",
                "https://hooks.example.com/",
                "--env-file",
                "prod.env",
                "--once",
            ]
        )

        assert parsed.url == "https://example.com/"
        assert parsed.interval_minutes == 2.5
        assert parsed.timeout_seconds == 7.0
        assert parsed.log_level == "debug"
        assert parsed.threshold == 4
        assert parsed.timezone == "Europe/Paris"
        assert parsed.persist is True
        assert parsed.state_file == Path("/tmp/keepwarm.json")
        assert parsed.webhook_url == "https://hooks.example.com/"
        assert parsed.env_file == Path("prod.env")
        assert parsed.once is True

    def test_rejects_unknown_verbosity(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--log-level", "loud"])

    def test_once_and_resume_are_exclusive(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["--once", "--resume"])

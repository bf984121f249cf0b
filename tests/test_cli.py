"""Tests for CLI interface.

Test Coverage:
    - Argument parsing
    - Command routing
    - Settings overrides from flags
    - Exit codes for configuration and snapshot failures
"""

from unittest.mock import AsyncMock

import pytest

from ci_snapshot.cli import cmd_version, create_parser, load_settings, main
from ci_snapshot.errors import AuthError, TransportError
from ci_snapshot.models import Pipeline, PipelinesListResponse
from ci_snapshot.pipeline.scheduler import SnapshotSummary


CONNECTION_ARGS = [
    "--api-base-url", "https://ci.example.com",
    "--client-id", "id",
    "--client-secret", "secret",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Run without config env vars or a .env file."""
    for name in (
        "API_BASE_URL", "CLIENT_ID", "CLIENT_SECRET", "PIPELINES_TO_EXTRACT",
        "SAVE_TO_DIRECTORY", "LOG_OBFUSCATE_REGEX", "CONCURRENCY", "TAIL_RUNNING_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.chdir(tmp_path)


class TestParserCreation:
    """Test CLI parser creation."""

    def test_parser_has_commands(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["--help"])

    def test_parser_prog_name(self):
        assert create_parser().prog == "ci-snapshot"

    def test_extract_defaults_are_none(self):
        """Unset flags must not override the environment."""
        args = create_parser().parse_args(["extract"])

        assert args.command == "extract"
        assert args.api_base_url is None
        assert args.pipelines_to_extract is None
        assert args.concurrency is None
        assert args.tail_running_logs is None

    def test_extract_flags_parsed(self):
        args = create_parser().parse_args([
            "extract", *CONNECTION_ARGS,
            "--pipelines", "github.com/acme/app",
            "--concurrency", "4",
            "--tail-running-logs",
        ])

        assert args.pipelines_to_extract == "github.com/acme/app"
        assert args.concurrency == 4
        assert args.tail_running_logs is True

    def test_invalid_concurrency_type(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["extract", "--concurrency", "many"])

    def test_pipelines_format_choices(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["pipelines", "--format", "xml"])


class TestLoadSettings:
    """Flags override settings fields."""

    def test_flags_become_settings(self, monkeypatch):
        monkeypatch.setenv("CONCURRENCY", "3")
        args = create_parser().parse_args([
            "extract", *CONNECTION_ARGS,
            "--pipelines", "github.com/acme/app",
            "--save-to-directory", "out",
        ])

        settings = load_settings(args)

        assert settings.api_base_url == "https://ci.example.com"
        assert settings.pipeline_paths == ["github.com/acme/app"]
        assert settings.save_to_directory == "out"
        assert settings.concurrency == 3  # from env, flag not given


class TestExtractCommand:
    """Extract command execution."""

    def test_missing_credentials_exit_2(self, capsys):
        exit_code = main(["extract", "--pipelines", "github.com/acme/app"])

        assert exit_code == 2
        assert "Invalid configuration" in capsys.readouterr().err

    def test_no_pipelines_exit_2(self, capsys):
        exit_code = main(["extract", *CONNECTION_ARGS])

        assert exit_code == 2
        assert "no pipelines to extract" in capsys.readouterr().err

    def test_success(self, mocker, capsys):
        scheduler_cls = mocker.patch("ci_snapshot.cli.SnapshotScheduler")
        scheduler_cls.return_value.run = AsyncMock(return_value=SnapshotSummary(
            pipelines_extracted=["github.com/acme/app"],
            pipelines_skipped=["github.com/acme/gone"],
            files_written=17,
        ))

        exit_code = main([
            "extract", *CONNECTION_ARGS,
            "--pipelines", "github.com/acme/app,github.com/acme/gone",
            "--concurrency", "5",
        ])

        assert exit_code == 0
        settings = scheduler_cls.call_args.args[0]
        assert settings.concurrency == 5
        out = capsys.readouterr().out
        assert "Extracted 1 pipelines (17 files)" in out
        assert "Skipped github.com/acme/gone" in out

    def test_snapshot_error_exit_1(self, mocker, capsys):
        scheduler_cls = mocker.patch("ci_snapshot.cli.SnapshotScheduler")
        scheduler_cls.return_value.run = AsyncMock(side_effect=TransportError(
            "https://ci.example.com/api/pipelines/x responded with status code 500",
            status_code=500,
        ))

        exit_code = main(["extract", *CONNECTION_ARGS, "--pipelines", "x/y/z"])

        assert exit_code == 1
        assert "status code 500" in capsys.readouterr().err

    def test_tracing_shut_down_after_failure(self, mocker):
        scheduler_cls = mocker.patch("ci_snapshot.cli.SnapshotScheduler")
        scheduler_cls.return_value.run = AsyncMock(side_effect=AuthError("denied"))
        provider = object()
        mocker.patch("ci_snapshot.cli.setup_tracing", return_value=provider)
        shutdown = mocker.patch("ci_snapshot.cli.shutdown_tracing")

        main(["extract", *CONNECTION_ARGS, "--pipelines", "x/y/z"])

        shutdown.assert_called_once_with(provider)


class TestPipelinesCommand:
    """Pipelines listing."""

    def test_lists_pipeline_paths(self, mocker, capsys):
        response = PipelinesListResponse.model_validate({
            "items": [
                {"repoSource": "github.com", "repoOwner": "acme", "repoName": "app"},
                {"repoSource": "github.com", "repoOwner": "acme", "repoName": "api"},
            ],
            "pagination": {"page": 1, "size": 20, "totalPages": 3, "totalItems": 42},
        })
        list_pipelines = mocker.patch(
            "ci_snapshot.cli._list_pipelines", AsyncMock(return_value=response)
        )

        exit_code = main(["pipelines", *CONNECTION_ARGS, "--search", "acme", "--since", "1w"])

        assert exit_code == 0
        _, filters, page_size = list_pipelines.call_args.args
        assert filters == {"search": ["acme"], "since": ["1w"]}
        assert page_size == 20
        out = capsys.readouterr().out
        assert "github.com/acme/app\ngithub.com/acme/api\n" in out
        assert "2 of 42 pipelines" in out

    def test_json_format(self, mocker, capsys):
        response = PipelinesListResponse(items=[Pipeline(id="p1")])
        mocker.patch("ci_snapshot.cli._list_pipelines", AsyncMock(return_value=response))

        exit_code = main(["pipelines", *CONNECTION_ARGS, "--format", "json"])

        assert exit_code == 0
        assert '"id": "p1"' in capsys.readouterr().out

    def test_auth_failure_exit_1(self, mocker, capsys):
        mocker.patch(
            "ci_snapshot.cli._list_pipelines", AsyncMock(side_effect=AuthError("denied"))
        )

        exit_code = main(["pipelines", *CONNECTION_ARGS])

        assert exit_code == 1
        assert "denied" in capsys.readouterr().err


class TestVersionCommand:
    """Version command."""

    def test_version_output(self, capsys):
        args = create_parser().parse_args(["version"])

        assert cmd_version(args) == 0
        assert "CI-SNAPSHOT v0.1.0" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: ci-snapshot" in capsys.readouterr().out

"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, patch

from sitecrawl.cli import build_parser, main, policy_from_args
from sitecrawl.exceptions import InvalidSeedUrlError
from sitecrawl.models import CrawledPage, CrawlResult


def sample_result():
    page = CrawledPage(url="https://example.com/", title="Home", content="Welcome")
    return CrawlResult(pages=[page], total_pages=1)


class TestArguments:
    """Test cases for argument parsing."""

    def test_defaults_match_policy(self):
        """Test CLI defaults produce the default policy."""
        args = build_parser().parse_args(["https://example.com"])
        policy = policy_from_args(args)

        assert policy.max_depth == 2
        assert policy.max_pages == 50
        assert policy.same_domain_only is True
        assert policy.save_html is False

    def test_all_options(self):
        """Test every flag maps onto the policy."""
        args = build_parser().parse_args([
            "https://example.com",
            "--max-depth", "1",
            "--max-pages", "5",
            "--timeout", "20000",
            "--settle", "0",
            "--selector", "main",
            "--all-domains",
            "--include", "/docs",
            "--include", "/guide",
            "--exclude", "/admin",
            "--save-html",
        ])
        policy = policy_from_args(args)

        assert policy.max_depth == 1
        assert policy.max_pages == 5
        assert policy.navigation_timeout == 20000
        assert policy.content_settle_delay == 0
        assert policy.content_selector == "main"
        assert policy.same_domain_only is False
        assert policy.include_patterns == ["/docs", "/guide"]
        assert policy.exclude_patterns == ["/admin"]
        assert policy.save_html is True


class TestMain:
    """Test cases for the entry point."""

    def test_prints_json(self, capsys):
        """Test the result is printed to stdout as JSON."""
        with patch("sitecrawl.cli._run", new=AsyncMock(return_value=sample_result())), \
                patch("sitecrawl.cli.setup_logging"):
            exit_code = main(["https://example.com"])

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["totalPages"] == 1
        assert data["pages"][0]["title"] == "Home"

    def test_writes_output_file(self, tmp_path, capsys):
        """Test --output writes JSON to a file."""
        output = tmp_path / "out" / "result.json"

        with patch("sitecrawl.cli._run", new=AsyncMock(return_value=sample_result())), \
                patch("sitecrawl.cli.setup_logging"):
            exit_code = main(["https://example.com", "--output", str(output)])

        assert exit_code == 0
        assert json.loads(output.read_text(encoding="utf-8"))["totalPages"] == 1
        assert capsys.readouterr().out == ""

    def test_invalid_options(self, capsys):
        """Test out-of-range options exit with a usage error."""
        with patch("sitecrawl.cli.setup_logging"):
            exit_code = main(["https://example.com", "--max-pages", "0"])

        assert exit_code == 2
        assert "Invalid options" in capsys.readouterr().err

    def test_invalid_seed(self, capsys):
        """Test a fatal crawler error exits non-zero."""
        with patch("sitecrawl.cli._run", new=AsyncMock(side_effect=InvalidSeedUrlError("nope"))), \
                patch("sitecrawl.cli.setup_logging"):
            exit_code = main(["nope"])

        assert exit_code == 1
        assert "Invalid start URL: nope" in capsys.readouterr().err

    def test_log_level_defaults_to_environment(self):
        """Test logging is left to SITECRAWL_LOG_LEVEL unless --log-level is given."""
        with patch("sitecrawl.cli._run", new=AsyncMock(return_value=sample_result())), \
                patch("sitecrawl.cli.setup_logging") as setup:
            main(["https://example.com"])
            main(["https://example.com", "--log-level", "DEBUG"])

        assert [c.args for c in setup.call_args_list] == [(None,), ("DEBUG",)]

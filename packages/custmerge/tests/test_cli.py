"""Tests for CLI argument parsing."""

import pytest

from custmerge.cli import build_parser


class TestGlobalOptions:
    def test_defaults(self):
        args = build_parser().parse_args(["scan", "names.csv"])
        assert args.log_level == "INFO"
        assert not args.json_logs
        assert args.threshold is None
        assert args.config is None

    def test_before_subcommand_survives(self):
        args = build_parser().parse_args(
            ["--log-level", "DEBUG", "--json-logs", "--threshold", "0.7", "scan", "names.csv"]
        )
        assert args.log_level == "DEBUG"
        assert args.json_logs
        assert args.threshold == 0.7

    def test_after_subcommand(self):
        args = build_parser().parse_args(["validate", "rules.json", "names.csv", "--log-level", "WARNING"])
        assert args.log_level == "WARNING"
        assert args.rules == "rules.json"

    def test_subcommand_value_wins(self):
        args = build_parser().parse_args(["--log-level", "DEBUG", "run", "FP-UAE", "--log-level", "ERROR"])
        assert args.log_level == "ERROR"
        assert args.division == "FP-UAE"


def test_subcommand_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])

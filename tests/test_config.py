"""
Tests for HelperConfig and IndexingSettings.
"""

import pytest

from services.index_runner import build_parser
from shared.clients.source.SourceClientManager import SourceClientManager
from shared.models.config import DEFAULT_STATE_DATABASE_URL, IndexingSettings


class TestHelperConfig:
    def test_blank_value_should_count_as_unset(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOME_KEY", "   ")

        assert helper_config.get_string_val("SOME_KEY", default="fallback") == "fallback"
        with pytest.raises(ValueError):
            helper_config.get_string_val("SOME_KEY")

    def test_get_number_val_should_reject_garbage(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOME_NUMBER", "twelve")

        with pytest.raises(ValueError):
            helper_config.get_number_val("SOME_NUMBER")

    def test_get_int_val_should_apply_minimum(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOME_NUMBER", "3")

        assert helper_config.get_int_val("SOME_NUMBER", default=1, minimum=5) == 5
        assert helper_config.get_int_val("SOME_NUMBER", default=1) == 3

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("ON", True), ("no", False), ("false", False)])
    def test_get_bool_val_should_parse_common_spellings(self, helper_config, monkeypatch, raw, expected) -> None:
        monkeypatch.setenv("SOME_FLAG", raw)

        assert helper_config.get_bool_val("SOME_FLAG", default=False) is expected

    def test_get_list_val_should_read_bracketed_list(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOME_LIST", "[1, 2 ,3]")

        assert helper_config.get_list_val("SOME_LIST", element_type=int) == [1, 2, 3]

    def test_get_list_val_should_reject_missing_brackets(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOME_LIST", "a,b")

        with pytest.raises(ValueError):
            helper_config.get_list_val("SOME_LIST")


class TestIndexingSettings:
    def test_defaults_should_apply_without_environment(self, helper_config, monkeypatch) -> None:
        for key in (
            "INDEXING_ENABLED", "INDEXING_CHUNK_SIZE", "INDEXING_CHUNK_OVERLAP", "INDEXING_MAX_NORMALIZED_CHARS",
            "INDEXING_EXECUTOR_CORE_POOL_SIZE", "INDEXING_EXECUTOR_MAX_POOL_SIZE",
            "INDEXING_EXECUTOR_QUEUE_CAPACITY", "INDEXING_RECONCILE_INTERVAL_SECONDS", "STATE_DATABASE_URL",
        ):
            monkeypatch.delenv(key, raising=False)

        settings = IndexingSettings.from_helper_config(helper_config)

        assert settings.enabled is True
        assert (settings.chunk_size, settings.chunk_overlap) == (1200, 200)
        assert settings.max_normalized_chars == 120_000
        assert (settings.executor_core_pool_size, settings.executor_max_pool_size) == (2, 4)
        assert settings.executor_queue_capacity == 300
        assert settings.reconcile_interval_seconds == 0
        assert settings.state_database_url == DEFAULT_STATE_DATABASE_URL

    def test_out_of_range_values_should_be_floored(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("INDEXING_ENABLED", "false")
        monkeypatch.setenv("INDEXING_MAX_NORMALIZED_CHARS", "500")
        monkeypatch.setenv("INDEXING_EXECUTOR_CORE_POOL_SIZE", "6")
        monkeypatch.setenv("INDEXING_EXECUTOR_MAX_POOL_SIZE", "2")

        settings = IndexingSettings.from_helper_config(helper_config)

        assert settings.enabled is False
        assert settings.max_normalized_chars == 10_000
        assert settings.executor_max_pool_size == 6


class TestSourceClientManager:
    def test_missing_engine_should_disable_source_client(self, helper_config, monkeypatch) -> None:
        monkeypatch.delenv("SOURCE_ENGINE", raising=False)

        assert SourceClientManager(helper_config).get_client() is None

    def test_unknown_engine_should_fail(self, helper_config, monkeypatch) -> None:
        monkeypatch.setenv("SOURCE_ENGINE", "confluence")

        with pytest.raises(ValueError):
            SourceClientManager(helper_config)


class TestRunnerArguments:
    def test_initial_should_require_team_id(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["initial"])

    def test_initial_should_parse_team_id(self) -> None:
        args = build_parser().parse_args(["initial", "--team-id", "42"])

        assert (args.command, args.team_id) == ("initial", 42)

    def test_reconcile_should_parse(self) -> None:
        assert build_parser().parse_args(["reconcile"]).command == "reconcile"

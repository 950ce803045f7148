"""Tests for structured logging and correlation ids."""

import json

import structlog

from ghinbox.observability.context import (
    clear_correlation_id,
    correlation_id_context,
    get_correlation_id,
    set_correlation_id,
)
from ghinbox.observability.logging import (
    add_correlation_id_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)
from ghinbox.observability.metrics import get_metrics_text


class TestAddCorrelationIdProcessor:
    def test_adds_correlation_id_when_set(self):
        set_correlation_id("test-corr-id")
        try:
            result = add_correlation_id_processor(None, "info", {"event": "x"})
        finally:
            clear_correlation_id()

        assert result["correlation_id"] == "test-corr-id"

    def test_adds_none_marker_when_not_set(self):
        clear_correlation_id()

        result = add_correlation_id_processor(None, "info", {"event": "x"})

        assert result["correlation_id"] == "none"


class TestCorrelationIdContext:
    def test_restores_previous_id(self):
        clear_correlation_id()

        with correlation_id_context("outer"):
            with correlation_id_context("inner") as inner:
                assert inner == "inner"
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"

        assert get_correlation_id() is None

    def test_generates_id_when_missing(self):
        with correlation_id_context() as corr_id:
            assert corr_id
            assert get_correlation_id() == corr_id


class TestConfigureLogging:
    def test_json_output_includes_context(self, capsys):
        configure_logging(level="INFO", json_output=True, add_timestamp=False)
        bind_context(login="octocat")
        try:
            with correlation_id_context("refresh-1"):
                get_logger("session").info("refresh_completed", groups=2)
        finally:
            clear_context()

        line = capsys.readouterr().err.strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "refresh_completed"
        assert payload["groups"] == 2
        assert payload["component"] == "session"
        assert payload["login"] == "octocat"
        assert payload["correlation_id"] == "refresh-1"
        assert payload["level"] == "info"

    def test_level_filtering(self, capsys):
        configure_logging(level="WARNING", json_output=True)
        try:
            structlog.get_logger().info("hidden_event")
            structlog.get_logger().warning("shown_event")
        finally:
            configure_logging(level="INFO", json_output=True)

        err = capsys.readouterr().err
        assert "hidden_event" not in err
        assert "shown_event" in err


def test_metrics_text_exposes_inbox_metrics():
    text = get_metrics_text().decode()

    assert "ghinbox_refresh_cycles_total" in text
    assert "ghinbox_remote_requests_total" in text

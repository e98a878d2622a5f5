from __future__ import annotations

import json
import logging

import pytest

from fleetboard.store import RecordStore
from fleetboard.utils.logging import JsonFormatter, _json_formatter, configure_logging

EXPECTED_ROWS = 10
EXPECTED_SKIPPED = 2


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


def test_json_formatter_promotes_standard_extra_fields() -> None:
    record = _record()
    record.rows = EXPECTED_ROWS
    record.store = "vehicles"

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "hello"
    assert payload["rows"] == EXPECTED_ROWS
    assert payload["store"] == "vehicles"
    assert "pathname" not in payload


def test_json_formatter_serialises_unknown_types() -> None:
    record = _record()
    record.path = logging  # not JSON serialisable

    payload = json.loads(JsonFormatter().format(record))

    assert "module 'logging'" in payload["path"]


def test_configure_logging_json_emits_store_warning(capsys, restore_root_logger) -> None:
    configure_logging(level="WARNING", json_logs=True)

    RecordStore(name="users").load([{"id": "a"}, {}, {"name": "x"}])

    lines = [line for line in capsys.readouterr().err.splitlines() if line.strip()]
    payload = json.loads(lines[-1])
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "fleetboard.store"
    assert payload["store"] == "users"
    assert payload["skipped"] == EXPECTED_SKIPPED


def test_configure_logging_without_force_keeps_existing_handlers(restore_root_logger) -> None:
    root = restore_root_logger
    sentinel = logging.NullHandler()
    root.handlers[:] = [sentinel]

    configure_logging(level="DEBUG", force=False)

    assert root.handlers == [sentinel]


def test_json_formatter_keeps_attribute_named_extra_as_is() -> None:
    record = _record()
    record.extra = {"skipped": EXPECTED_SKIPPED}

    payload = json.loads(_json_formatter(record))

    assert payload["extra"] == {"skipped": EXPECTED_SKIPPED}
    assert "skipped" not in payload

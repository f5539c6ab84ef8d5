import json
import logging

import pytest
import structlog

from build_orchestrator.core.logging import setup_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_json_logs_are_written_to_file(tmp_path, restore_logging):
    log_file = tmp_path / "logs" / "build.log"

    setup_logging(log_level="info", log_format="json", log_file=str(log_file))
    structlog.get_logger("build_orchestrator.test").info("Pipeline succeeded", pipeline_id=77)

    records = [json.loads(line) for line in log_file.read_text().splitlines()]
    record = records[-1]
    assert record["event"] == "Pipeline succeeded"
    assert record["pipeline_id"] == 77
    assert record["level"] == "info"


def test_level_filters_debug(tmp_path, restore_logging):
    log_file = tmp_path / "build.log"

    setup_logging(log_level="WARNING", log_format="json", log_file=str(log_file))
    logger = structlog.get_logger("build_orchestrator.test")
    logger.info("hidden")
    logger.warning("shown")

    events = [json.loads(line)["event"] for line in log_file.read_text().splitlines()]
    assert events == ["shown"]

import io
import json
import logging

import pytest
import structlog

from chaindeploy.logging_config import setup_logging


def test_setup_logging_sets_level(restore_root_logger):
    setup_logging("DEBUG", "json", stream=io.StringIO())

    assert restore_root_logger.level == logging.DEBUG
    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)


def test_setup_logging_quiets_http_clients(restore_root_logger):
    setup_logging("INFO", stream=io.StringIO())

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_json_output_includes_bound_context(restore_root_logger):
    stream = io.StringIO()
    setup_logging("INFO", "json", stream=stream)
    structlog.contextvars.bind_contextvars(deployment_id="deploy_test")
    try:
        logging.getLogger("chaindeploy.test").info("hello")
    finally:
        structlog.contextvars.unbind_contextvars("deployment_id")

    line = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert line["deployment_id"] == "deploy_test"
    assert line["event"] == "hello"
    assert line["level"] == "info"
    assert line["logger"] == "chaindeploy.test"


def test_defaults_to_stderr(restore_root_logger, capsys):
    setup_logging("INFO", "json")
    logging.getLogger("chaindeploy.test").info("to stderr")

    captured = capsys.readouterr()
    assert captured.out == ""
    assert '"event": "to stderr"' in captured.err


def test_auto_format_uses_json_off_terminal(restore_root_logger):
    stream = io.StringIO()
    setup_logging("INFO", "auto", stream=stream)
    logging.getLogger("chaindeploy.test").info("piped")

    assert json.loads(stream.getvalue().strip())["event"] == "piped"


def test_unknown_format_rejected(restore_root_logger):
    with pytest.raises(ValueError, match="Unknown log format"):
        setup_logging("INFO", "xml")

import json
import logging

from observability.logging import ColoredFormatter, JSONFormatter, setup_logging


def make_record(msg="Fetched page", level=logging.INFO, **extra):
    record = logging.LogRecord("pipelines.crawler", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extras():
    line = JSONFormatter("docsift-test").format(make_record(url="https://a.test/"))
    entry = json.loads(line)

    assert entry["message"] == "Fetched page"
    assert entry["level"] == "INFO"
    assert entry["service"] == "docsift-test"
    assert entry["url"] == "https://a.test/"
    assert entry["timestamp"].endswith("Z")


def test_colored_formatter_plain_when_disabled():
    line = ColoredFormatter(use_colors=False).format(make_record(level=logging.ERROR))
    assert "| ERROR    | pipelines.crawler | Fetched page" in line
    assert "\033[" not in line


def test_setup_logging_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "crawl.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(level="DEBUG", log_file=str(log_file))
        logging.getLogger("pipelines.test").debug("hello")
        for handler in root.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    entry = json.loads(log_file.read_text().strip().splitlines()[-1])
    assert entry["message"] == "hello"
    assert logging.getLogger("aiohttp").level == logging.WARNING

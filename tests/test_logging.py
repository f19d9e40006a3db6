"""Tests for structured JSON log output."""

import json
import logging
from datetime import datetime, timezone

from dochub.logging import ROOT_LOGGER, DailyFileHandler, configure_logging, get_logger, json_formatter

# 2023-11-14 and 2023-11-15, UTC
DAY_ONE = 1_700_000_000.0
DAY_TWO = DAY_ONE + 24 * 3600


def make_record(msg="Documentation job queued", created=None, **extra):
    record = logging.LogRecord(ROOT_LOGGER + ".routes", logging.INFO, __file__, 1, msg, None, None)
    if created is not None:
        record.created = created
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def read_entries(directory):
    files = sorted(directory.glob("hub-*.log"))
    assert len(files) == 1
    return [json.loads(line) for line in files[0].read_text().splitlines()]


class TestJsonFormatter:
    """Tests for the formatter applied to stdlib records."""

    def test_renders_one_json_line(self):
        line = json_formatter().format(make_record(project="docs-site", queuePosition=1))

        entry = json.loads(line)
        assert "\n" not in line
        assert entry["level"] == "info"
        assert entry["logger"] == "dochub.routes"
        assert entry["message"] == "Documentation job queued"
        assert entry["project"] == "docs-site"
        assert entry["queuePosition"] == 1
        assert entry["timestamp"].endswith("Z")

    def test_standard_attributes_not_duplicated(self):
        entry = json.loads(json_formatter().format(make_record()))
        assert "lineno" not in entry
        assert "args" not in entry
        assert "event" not in entry

    def test_non_serializable_values(self):
        entry = json.loads(json_formatter().format(make_record(path=object())))
        assert "object" in entry["path"]


class TestDailyFileHandler:
    """Tests for daily log files."""

    def test_writes_to_dated_file(self, tmp_path):
        handler = DailyFileHandler(tmp_path / "logs")
        handler.setFormatter(json_formatter())
        record = make_record(project="docs-site")

        handler.emit(record)
        handler.close()

        day = datetime.fromtimestamp(record.created, tz=timezone.utc).strftime("%Y-%m-%d")
        path = tmp_path / "logs" / f"hub-{day}.log"
        lines = path.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["project"] == "docs-site"

    def test_keeps_stream_open_within_a_day(self, tmp_path):
        handler = DailyFileHandler(tmp_path)
        handler.setFormatter(json_formatter())

        handler.emit(make_record(created=DAY_ONE))
        stream = handler.stream
        handler.emit(make_record(created=DAY_ONE + 60))

        assert handler.stream is stream
        handler.close()
        assert len((tmp_path / "hub-2023-11-14.log").read_text().splitlines()) == 2

    def test_switches_file_when_date_changes(self, tmp_path):
        handler = DailyFileHandler(tmp_path)
        handler.setFormatter(json_formatter())

        handler.emit(make_record("first", created=DAY_ONE))
        handler.emit(make_record("second", created=DAY_TWO))
        handler.close()

        first = (tmp_path / "hub-2023-11-14.log").read_text().splitlines()
        second = (tmp_path / "hub-2023-11-15.log").read_text().splitlines()
        assert [json.loads(line)["message"] for line in first] == ["first"]
        assert [json.loads(line)["message"] for line in second] == ["second"]


class TestConfigureLogging:
    """Tests for configure_logging() and get_logger()."""

    def test_module_loggers_reach_file(self, tmp_path):
        configure_logging("INFO", tmp_path)

        get_logger("dochub.scheduler").info("Job completed", success=True, job_id="abc")

        entry = read_entries(tmp_path)[-1]
        assert entry["message"] == "Job completed"
        assert entry["success"] is True
        assert entry["job_id"] == "abc"
        assert entry["level"] == "info"
        assert entry["logger"] == "dochub.scheduler"

    def test_stdlib_loggers_share_format(self, tmp_path):
        configure_logging("INFO", tmp_path)

        logging.getLogger("dochub.server").warning("Plain record", extra={"port": 6000})

        entry = read_entries(tmp_path)[-1]
        assert entry["message"] == "Plain record"
        assert entry["level"] == "warning"
        assert entry["port"] == 6000

    def test_exception_rendered(self, tmp_path):
        configure_logging("INFO", tmp_path)

        try:
            raise ValueError("bad payload")
        except ValueError:
            get_logger("dochub.routes").exception("Service restart failed", project="docs-site")

        entry = read_entries(tmp_path)[-1]
        assert entry["level"] == "error"
        assert "ValueError: bad payload" in entry["exception"]

    def test_level_filters(self, tmp_path):
        configure_logging("WARNING", tmp_path)

        get_logger("dochub.executor").info("quiet")

        assert list(tmp_path.glob("hub-*.log")) == []

    def test_reconfigure_replaces_handlers(self):
        configure_logging("INFO")
        configure_logging("INFO")
        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1

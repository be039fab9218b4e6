import io
import json

import pytest

from regionarchiver.logging import configure_logging, get_logger
from regionarchiver.reporting import (
    JsonLinesReporter,
    PlainReporter,
    SilentReporter,
    get_reporter,
    make_reporter,
    parse_summary_fields,
    set_reporter,
    set_verbosity,
    task,
)


@pytest.fixture(autouse=True)
def _restore_reporter():
    previous = get_reporter()
    yield
    set_reporter(previous)
    set_verbosity(0)


def _events(stream: io.StringIO):
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_summary_lines_become_structured_events():
    out = io.StringIO()
    rep = JsonLinesReporter(stream=out)
    rep.status("Import summary: state=DONE objects=3 assets=7")
    summary, status = _events(out)
    assert summary["event"] == "summary"
    assert summary["summary_type"] == "import"
    assert summary["objects"] == "3"
    assert status["event"] == "status"


def test_parse_summary_fields_ignores_bare_words():
    assert parse_summary_fields("Filter summary: parts_kept=2 junk x=1") == {
        "parts_kept": "2",
        "x": "1",
    }


def test_task_failure_is_reported():
    out = io.StringIO()
    set_reporter(JsonLinesReporter(stream=out))
    with pytest.raises(RuntimeError):
        with task("t1", "Work", total=2) as final:
            final["entries"] = 1
            raise RuntimeError("boom")
    end = _events(out)[-1]
    assert end["event"] == "task_end"
    assert end["status"] == "failed"
    assert end["entries"] == 1


def test_plain_completion_line():
    out = io.StringIO()
    set_reporter(PlainReporter(stream=out, use_color=False))
    with task("t2", "Assets", total=1) as final:
        get_reporter().advance("t2")
        final["assets"] = 1
    assert "Assets 1/1" in out.getvalue()
    assert "[assets=1]" in out.getvalue()


def test_logger_records_are_routed_to_reporter():
    out = io.StringIO()
    set_reporter(JsonLinesReporter(stream=out))
    configure_logging(0)
    get_logger().warning("careful")
    get_logger().debug("hidden")
    events = _events(out)
    assert [e["message"] for e in events] == ["careful"]
    assert events[0]["level"] == "warning"


def test_make_reporter_falls_back_to_plain_off_tty():
    assert isinstance(make_reporter("json"), JsonLinesReporter)
    assert isinstance(make_reporter("silent"), SilentReporter)
    assert isinstance(make_reporter("plain"), PlainReporter)

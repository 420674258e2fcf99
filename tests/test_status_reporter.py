from vehiclelister.core.status_reporter import (
    JS_SHOW_STATUS,
    STATUS_ELEMENT_ID,
    LogStatusReporter,
    PageStatusReporter,
)


def test_error_messages_persist_and_others_auto_dismiss(make_page):
    page = make_page("<body></body>")
    reporter = PageStatusReporter(page, dismiss_ms=5000)

    reporter.report("Uploading images...")
    reporter.report("Form did not load properly. Try refreshing the page.", "error")

    (script, info), (_, error) = page.evaluate_calls
    assert script == JS_SHOW_STATUS
    assert info["id"] == STATUS_ELEMENT_ID == error["id"]
    assert info["color"] == "#4285f4" and info["persist"] is False
    assert info["dismissMs"] == 5000
    assert error["color"] == "#db4437" and error["persist"] is True


def test_unknown_severity_renders_as_info(make_page):
    page = make_page("<body></body>")
    PageStatusReporter(page).report("hello", "loud")
    assert page.evaluate_calls[0][1]["color"] == "#4285f4"


def test_render_failure_is_logged_not_raised(make_page):
    page = make_page("<body></body>")
    logs: list[tuple[str, str]] = []

    def _boom(script, arg):
        raise RuntimeError("Execution context was destroyed")

    page.evaluate_handler = _boom
    reporter = PageStatusReporter(page, log_fn=lambda msg, level="info": logs.append((msg, level)))
    reporter.report("Form filled successfully!", "success")

    assert logs[0] == ("[status:success] Form filled successfully!", "info")
    assert logs[-1][1] == "warn"


def test_log_reporter_maps_levels():
    logs: list[tuple[str, str]] = []
    reporter = LogStatusReporter(lambda msg, level="info": logs.append((msg, level)))
    reporter.report("partial", "warning")
    reporter.report("broken", "error")
    assert logs == [("[status:warning] partial", "warn"), ("[status:error] broken", "error")]

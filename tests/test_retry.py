from vehiclelister.core.retry import page_sleep, with_retry


def test_with_retry_returns_first_hit_without_sleeping():
    sleeps: list[int] = []
    result = with_retry(lambda: "found", max_attempts=5, delay_ms=100, sleep=sleeps.append)
    assert result == "found"
    assert sleeps == []


def test_with_retry_sleeps_after_every_miss_including_last():
    sleeps: list[int] = []
    calls = {"n": 0}

    def _op():
        calls["n"] += 1
        return None

    assert with_retry(_op, max_attempts=4, delay_ms=250, sleep=sleeps.append) is None
    assert calls["n"] == 4
    assert sleeps == [250, 250, 250, 250]


def test_with_retry_treats_empty_collections_as_miss():
    answers = iter([[], (), ["x"]])
    sleeps: list[int] = []
    misses: list[int] = []
    result = with_retry(
        lambda: next(answers),
        max_attempts=5,
        delay_ms=10,
        sleep=sleeps.append,
        on_miss=misses.append,
    )
    assert result == ["x"]
    assert misses == [1, 2]
    assert len(sleeps) == 2


def test_with_retry_keeps_falsy_scalars_as_hits():
    assert with_retry(lambda: 0, max_attempts=3, delay_ms=1, sleep=lambda _ms: None) == 0


def test_with_retry_runs_at_least_once():
    calls = {"n": 0}

    def _op():
        calls["n"] += 1
        return None

    with_retry(_op, max_attempts=0, delay_ms=1, sleep=lambda _ms: None)
    assert calls["n"] == 1


def test_page_sleep_uses_wait_for_timeout(make_page):
    page = make_page("<div></div>")
    page_sleep(page)(321)
    assert page.waits == [321]

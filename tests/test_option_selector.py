from vehiclelister.core.element_resolver import ElementResolver, ResolutionQuery
from vehiclelister.core.option_selector import OptionSelector, match_option_index


def _selector(page, **kwargs):
    kwargs.setdefault("trigger_attempts", 2)
    kwargs.setdefault("trigger_delay", 10)
    return OptionSelector(page, ElementResolver(page), **kwargs)


def test_match_prefers_exact_over_earlier_substring():
    assert match_option_index(["Dark Blue", "Blue Metallic", "  blue "], "Blue") == 2
    assert match_option_index(["Dark Blue", "Red"], "blue") == 0
    assert match_option_index(["Red"], "Blue") is None
    assert match_option_index(["Red"], "  ") is None


def test_select_clicks_exact_option_when_substring_comes_first(make_page):
    page = make_page(
        '<form><div role="combobox" aria-label="Exterior color" id="trigger"></div>'
        '<ul role="listbox"><li role="option" id="o1">Dark Blue</li>'
        '<li role="option" id="o2">Blue</li></ul></form>'
    )
    ok = _selector(page).select(
        ResolutionQuery.of(['[aria-label="Exterior color"]']),
        "blue",
        dropdown_delay=800,
        match_delay=500,
    )
    assert ok is True
    assert page.events_for("#o2") == ["click"]
    assert page.events_for("#o1") == []
    assert page.events_for("#trigger") == ["click"]
    assert 800 in page.waits and page.waits[-1] == 500


def test_options_rendered_after_opening_are_found(make_page):
    page = make_page(
        '<form id="f"><div role="combobox" aria-label="Year" id="year"></div></form>'
    )

    def _open_listbox(p, element):
        if element.tag is p.soup.select_one("#year"):
            p.append_html(
                "#f",
                '<div role="listbox"><div role="option">2021</div>'
                '<div role="option" id="y22">2022</div></div>',
            )

    page.on_click = _open_listbox
    assert _selector(page).select(ResolutionQuery.of(['[aria-label="Year"]']), 2022) is True
    assert page.events_for("#y22") == ["click"]


def test_no_match_closes_list_then_types_directly(make_page):
    page = make_page(
        '<form><input type="text" aria-label="Transmission" id="trigger">'
        '<ul><li id="auto">Automatic</li><li>Manual</li></ul></form>'
    )
    ok = _selector(page).select(ResolutionQuery.of(['[aria-label="Transmission"]']), "CVT")
    assert ok is True
    assert page.value_of("#trigger") == "CVT"
    events = page.events_for("#trigger")
    assert events[:2] == ["click", "click"]
    assert events[-4:] == ["value:set", "input", "change", "keydown"]
    enter = [init for el, kind, init in page.events if kind == "keydown"][-1]
    assert enter["key"] == "Enter" and enter["bubbles"] is True
    assert page.events_for("#auto") == []


def test_native_select_found_through_label_fallback(make_page):
    page = make_page(
        "<form><label>Fuel type</label>"
        '<select name="fuel" id="fuel"><option value="gas">Gasoline</option>'
        '<option value="ev">Electric</option></select></form>'
    )
    ok = _selector(page).select(ResolutionQuery.of(['[aria-label="Fuel type"]']), "electric")
    assert ok is True
    assert page.value_of("#fuel") == "ev"
    assert "click" not in page.events_for("#fuel")


def test_fallback_to_first_visible_input(make_page):
    page = make_page(
        '<form><input type="hidden" name="token">'
        '<input type="text" name="first" id="first"></form>'
    )
    ok = _selector(page).select(ResolutionQuery.of(['[aria-label="Body style"]']), "Sedan")
    assert ok is True
    assert page.value_of("#first") == "Sedan"


def test_fails_when_no_option_and_trigger_is_not_text_input(make_page):
    page = make_page(
        '<form><div role="combobox" aria-label="Fuel type" id="trigger"></div></form>'
    )
    ok = _selector(page, option_attempts=2, option_delay=5).select(
        ResolutionQuery.of(['[aria-label="Fuel type"]']), "Diesel"
    )
    assert ok is False
    assert page.events_for("#trigger") == ["click"]


def test_blank_target_is_rejected_without_resolving(make_page):
    page = make_page('<form><div role="combobox" aria-label="Year"></div></form>')
    assert _selector(page).select(ResolutionQuery.of(['[aria-label="Year"]']), "  ") is False
    assert page.events == []
    assert page.waits == []

from __future__ import annotations

from vehiclelister.core.extractor import (
    extract_vehicle_data,
    is_vehicle_detail_page,
    parse_title,
)

DETAIL_URL = "https://www.autotrader.ca/a/honda/civic/ottawa/ontario/5_61234_20240101/"

DETAIL_HTML = """
<html><body>
  <h1 class="hero-title">2021 Honda Civic LX</h1>
  <p class="hero-sub-title">45,210 km | Ottawa, ON | CARFAX</p>
  <p class="hero-location">45,210 km | Ottawa, ON</p>
  <p class="hero-price">$21,995</p>
  <p class="hero-msrp">MSRP $24,995</p>
  <span class="hero-badge used"></span>
  <div id="vdp-collapsible-content-text">One owner, no accidents.</div>
  <div id="sl-card-body">
    <div class="list-item">
      <span id="spec-key-0">Transmission</span>
      <span id="spec-value-0"><strong>CVT</strong></span>
    </div>
    <div class="list-item">
      <span id="spec-key-1">Doors</span>
      <span id="spec-value-1"><strong>4 door</strong></span>
    </div>
    <div class="list-item">
      <span id="spec-key-2">Exterior Colour</span>
      <span id="spec-value-2"><strong>Sonic Grey</strong></span>
    </div>
    <div class="list-item">
      <span id="spec-key-3">Warranty</span>
      <span id="spec-value-3"><strong>Yes</strong></span>
    </div>
  </div>
  <div class="gallery-carousel-md">
    <div class="gallery-thumbnail"><img src="/photos/car-180x135.jpg"></div>
    <div class="gallery-thumbnail"><img src="/photos/car-180x135.jpg"></div>
    <div class="gallery-thumbnail"><img src="https://cdn.test/side-180x135.jpg"></div>
    <div class="gallery-thumbnail"><img src="data:image/gif;base64,R0lGOD"></div>
  </div>
  <a class="dealer-name">Capital Honda</a>
</body></html>
"""


def test_parse_title_variants():
    assert parse_title("2021 Honda Civic LX") == {
        "year": 2021,
        "make": "Honda",
        "model": "Civic",
        "trim": "LX",
    }
    assert parse_title("2021 Kia Niro EV") == {
        "year": 2021,
        "make": "Kia",
        "model": "Niro EV",
        "trim": "",
    }
    assert parse_title("2020 Mazda CX-5")["model"] == "CX-5"
    assert parse_title("2020 Mercedes-Benz C-Class C300")["model"] == "C-Class C300"
    assert parse_title("Honda Civic") == {}


def test_detail_page_detection():
    assert is_vehicle_detail_page(DETAIL_URL, DETAIL_HTML) is True
    assert is_vehicle_detail_page("https://www.autotrader.ca/cars/", DETAIL_HTML) is False
    assert is_vehicle_detail_page(DETAIL_URL, "<html></html>") is False
    assert extract_vehicle_data("<html></html>", DETAIL_URL) is None


def test_extract_vehicle_data_fields():
    data = extract_vehicle_data(DETAIL_HTML, DETAIL_URL)

    assert data["source"] == "autotrader.ca"
    assert data["sourceUrl"] == DETAIL_URL
    assert (data["year"], data["make"], data["model"], data["trim"]) == (2021, "Honda", "Civic", "LX")
    assert data["dealerLocation"] == "Ottawa, ON"
    assert data["kilometers"] == 45210
    assert data["price"] == 21995
    assert isinstance(data["price"], int)
    assert data["msrp"] == 24995
    assert data["condition"] == "Used"
    assert data["description"] == "One owner, no accidents."
    assert data["transmission"] == "CVT"
    assert data["doors"] == 4
    assert data["exteriorColor"] == "Sonic Grey"
    assert "Warranty" not in data and "warranty" not in data
    assert data["dealerName"] == "Capital Honda"
    assert data["images"] == [
        "https://www.autotrader.ca/photos/car-1024x786.jpg",
        "https://cdn.test/side-1024x786.jpg",
    ]
    assert data["dateExtracted"]


def test_location_falls_back_to_subtitle_and_main_photo():
    html = """
    <h1 class="hero-title">2018 Ford F-150 XLT</h1>
    <p class="hero-sub-title">120,000 km | CARFAX | Kanata, ON</p>
    <p class="hero-price">Call for price</p>
    <img id="mainPhoto" src="https://cdn.test/main-180x135.jpg">
    """
    data = extract_vehicle_data(html, DETAIL_URL)
    assert data["dealerLocation"] == "Kanata, ON"
    assert data["kilometers"] == 120000
    assert "price" not in data
    assert data["images"] == ["https://cdn.test/main-180x135.jpg"]

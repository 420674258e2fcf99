"""
AutoTrader 车辆详情页解析：HTML → 字段记录（dict）。

只做 DOM 读取，不发请求；页面 HTML 由调用方（CLI 里的浏览器会话）提供。
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

SOURCE_NAME = "autotrader.ca"

_YEAR_RE = re.compile(r"^(19|20)\d{2}")
_TRIM_AS_MODEL_RE = re.compile(r"^[A-Z]-?[0-9]+$")
_KM_RE = re.compile(r"([0-9,]+)\s*km", re.IGNORECASE)
_LEADING_KM_RE = re.compile(r"^[\d,]+\s*km", re.IGNORECASE)
_DIGITS_RE = re.compile(r"[0-9,]+")

THUMBNAIL_SIZE = "-180x135"
FULL_SIZE = "-1024x786"

SPEC_KEYS: dict[str, str] = {
    "Body Type": "bodyType",
    "Transmission": "transmission",
    "Drivetrain": "drivetrain",
    "Engine": "engine",
    "Fuel Type": "fuelType",
    "Exterior Colour": "exteriorColor",
    "Interior Colour": "interiorColor",
    "Stock Number": "stockNumber",
    "VIN": "vin",
    "Doors": "doors",
    "Cylinders": "cylinders",
    "Horsepower": "horsepower",
}

CONDITION_CLASSES = (
    ("new", "New"),
    ("used", "Used"),
    ("cpo", "Certified Pre-Owned"),
)

HtmlInput = Union[str, BeautifulSoup]


def _soup(html: HtmlInput) -> BeautifulSoup:
    if isinstance(html, BeautifulSoup):
        return html
    return BeautifulSoup(html or "", "html.parser")


def _text(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return node.get_text(" ", strip=True)


def _number(value: float) -> Union[int, float]:
    return int(value) if value == int(value) else value


def is_vehicle_detail_page(url: str, html: HtmlInput) -> bool:
    return "/a/" in (url or "") and _soup(html).select_one(".hero-title") is not None


def parse_title(title: str) -> dict:
    """'2021 Kia Niro EV' → year/make/model/trim；少于三段时不解析。"""
    data: dict = {}
    parts = title.split()
    if len(parts) < 3:
        return data
    m = _YEAR_RE.match(title)
    if m:
        data["year"] = int(m.group(0))
        parts = parts[1:]
    if not parts:
        return data
    data["make"] = parts[0]
    if len(parts) >= 3:
        trim = parts[-1]
        model = " ".join(parts[1:-1])
        if not model or trim.lower() == "ev" or _TRIM_AS_MODEL_RE.match(trim):
            model = " ".join(parts[1:])
            trim = ""
        data["model"] = model
        data["trim"] = trim
    else:
        data["model"] = " ".join(parts[1:])
        data["trim"] = ""
    return data


def _extract_location(soup: BeautifulSoup) -> Optional[str]:
    location = None
    raw = _text(soup.select_one(".hero-location"))
    if raw:
        pieces = raw.split("|")
        location = pieces[0].strip()
        if re.search(r"km", location, re.IGNORECASE) and len(pieces) > 1:
            location = pieces[1].strip()

    if not location or "CARFAX" in location:
        subtitle = _text(soup.select_one(".hero-sub-title"))
        for part in subtitle.split("|"):
            part = part.strip()
            if part and "CARFAX" not in part and not _LEADING_KM_RE.match(part):
                location = part
                break
    return location or None


def _extract_description(soup: BeautifulSoup) -> Optional[str]:
    node = soup.select_one("#vdp-collapsible-content-text")
    if node is None:
        node = soup.select_one(".force-wrapping, #vdp-collapsible-short-text")
    text = _text(node)
    if text:
        return text
    for container in soup.select(
        ".card-body .force-wrapping, .collapsible-container .card-body, .vdp-content-description"
    ):
        text = _text(container)
        if len(text) > 50:
            return text
    return None


def _extract_specs(soup: BeautifulSoup) -> dict:
    specs: dict = {}
    for item in soup.select("#sl-card-body .list-item"):
        key = item.select_one('[id^="spec-key-"]')
        value = item.select_one('[id^="spec-value-"] strong')
        if key is None or value is None:
            continue
        field_name = SPEC_KEYS.get(_text(key))
        if not field_name:
            continue
        value_text = _text(value)
        if field_name == "doors":
            m = re.match(r"\d+", value_text)
            if not m:
                continue
            specs[field_name] = int(m.group(0))
        else:
            specs[field_name] = value_text
    return specs


def _image_urls(nodes, base_url: str, *, full_size: bool) -> list[str]:
    urls: list[str] = []
    for img in nodes:
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        src = urljoin(base_url, src)
        if full_size:
            src = src.replace(THUMBNAIL_SIZE, FULL_SIZE)
        if src not in urls:
            urls.append(src)
    return urls


def _extract_images(soup: BeautifulSoup, base_url: str) -> list[str]:
    gallery = soup.select(".gallery-carousel-md .gallery-thumbnail img")
    if gallery:
        images = _image_urls(gallery, base_url, full_size=True)
    else:
        images = _image_urls(soup.select("#mainPhoto"), base_url, full_size=False)
    if not images:
        images = _image_urls(
            soup.select(".gallery-thumbnails-wrapper img"), base_url, full_size=True
        )
    return images


def extract_vehicle_data(html: HtmlInput, url: str) -> Optional[dict]:
    """
    解析详情页；不是详情页时返回 None。

    字段名与填表使用的记录字段一致（make / model / year / price / kilometers ...）。
    """
    soup = _soup(html)
    if not is_vehicle_detail_page(url, soup):
        return None

    data: dict = {
        "source": SOURCE_NAME,
        "sourceUrl": url,
        "images": [],
        "dateExtracted": datetime.now(timezone.utc).isoformat(),
    }

    title = _text(soup.select_one(".hero-title"))
    if title:
        data.update(parse_title(title))

    location = _extract_location(soup)
    if location:
        data["dealerLocation"] = location

    km = _KM_RE.search(_text(soup.select_one(".hero-sub-title")))
    if km:
        data["kilometers"] = int(km.group(1).replace(",", ""))

    price_raw = re.sub(r"[^0-9.]", "", _text(soup.select_one(".hero-price")))
    try:
        data["price"] = _number(float(price_raw))
    except ValueError:
        pass

    msrp = _DIGITS_RE.search(_text(soup.select_one(".hero-msrp")))
    if msrp and msrp.group(0).replace(",", ""):
        data["msrp"] = _number(float(msrp.group(0).replace(",", "")))

    badge = soup.select_one(".hero-badge")
    if badge is not None:
        classes = set(badge.get("class") or [])
        for css_class, label in CONDITION_CLASSES:
            if css_class in classes:
                data["condition"] = label
                break

    description = _extract_description(soup)
    if description:
        data["description"] = description

    data.update(_extract_specs(soup))
    data["images"] = _extract_images(soup, url)

    dealer = _text(soup.select_one(".dealer-name, .dealer-link"))
    if dealer:
        data["dealerName"] = dealer

    return data

"""
字段映射：记录里的字段名 → 目标表单上的控件查询与写入方式。

职责：
- FIELD_SPECS 固定填写顺序（车辆类别最先，描述最后）
- 从只读记录视图推导实际写入值（别名、价格/里程取数字、变速箱归一化）
- 标题与描述的组合文案
推导出的值从不写回记录。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from ..config import EngineConfig
from .element_resolver import ResolutionQuery

FieldKind = Literal["text", "option"]

_NUMBER_RE = re.compile(r"[\d,]+(\.\d+)?")


@dataclass(frozen=True)
class FieldSpec:
    key: str
    kind: FieldKind
    query: ResolutionQuery
    aliases: tuple[str, ...] = ()
    clear_first: bool = True
    post_delay: int = 500
    slow: bool = False


def _text(key, selectors, label, *, aliases=(), post_delay=500, slow=False) -> FieldSpec:
    return FieldSpec(
        key=key,
        kind="text",
        query=ResolutionQuery.of(
            selectors, label_text=label, placeholder=label, aria_label=label
        ),
        aliases=tuple(aliases),
        post_delay=post_delay,
        slow=slow,
    )


def _option(key, selectors, label) -> FieldSpec:
    return FieldSpec(
        key=key,
        kind="option",
        query=ResolutionQuery.of(selectors, label_text=label, aria_label=label),
        post_delay=500,
        slow=True,
    )


FIELD_SPECS: tuple[FieldSpec, ...] = (
    _option(
        "vehicleType",
        ['[aria-label="Vehicle type"]', '[placeholder="Vehicle type"]'],
        "Vehicle type",
    ),
    _option("year", ['[aria-label="Year"]', 'select[name="year"]'], "Year"),
    _text("make", ['input[name="make"]'], "Make"),
    _text("model", ['input[name="model"]'], "Model"),
    _text(
        "mileage",
        [
            'input[name="mileage"]',
            'input[aria-label="Mileage"]',
            'input[placeholder*="Mileage"]',
            'input[id*="mileage"]',
            'input[id*="kilom"]',
        ],
        "Mileage",
        aliases=("kilometers",),
    ),
    _text(
        "price",
        [
            'input[name="price"]',
            'input[aria-label="Price"]',
            'input[placeholder*="Price"]',
            'input[id*="price"]',
        ],
        "Price",
        slow=True,
    ),
    _option(
        "exteriorColor",
        [
            '[aria-label="Exterior Color"]',
            '[aria-label="Exterior color"]',
            '[placeholder*="Exterior Color"]',
            'select[name="exteriorColor"]',
        ],
        "Exterior color",
    ),
    _option(
        "transmission",
        [
            '[aria-label="Transmission"]',
            'select[name="transmission"]',
            '[role="combobox"][aria-label*="Transmission"]',
        ],
        "Transmission",
    ),
    _option(
        "fuelType",
        [
            '[aria-label="Fuel Type"]',
            '[aria-label="Fuel type"]',
            'select[name="fuelType"]',
            '[role="combobox"][aria-label*="Fuel"]',
        ],
        "Fuel type",
    ),
    _text(
        "title",
        [
            'input[name="title"]',
            'input[aria-label="Title"]',
            'input[placeholder*="Title"]',
            'input[id*="title"]',
        ],
        "Title",
    ),
    _text(
        "location",
        [
            'input[placeholder*="Location"]',
            'input[aria-label="Location"]',
            'input[name="location"]',
        ],
        "Location",
        aliases=("dealerLocation",),
    ),
    FieldSpec(
        key="description",
        kind="text",
        query=ResolutionQuery.of(
            [
                'textarea[name="description"]',
                'textarea[aria-label="Description"]',
                "textarea",
                'div[contenteditable="true"]',
                'div[role="textbox"]',
            ],
            label_text="Description",
            aria_label="Description",
        ),
        post_delay=800,
    ),
)

FIELD_ORDER: tuple[str, ...] = tuple(spec.key for spec in FIELD_SPECS)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def record_value(record: Mapping[str, Any], key: str, aliases: tuple[str, ...] = ()) -> Any:
    """取字段值；缺失、None、空白字符串都视为未设置，返回 None。"""
    for name in (key, *aliases):
        value = record.get(name)
        if _present(value):
            return value.strip() if isinstance(value, str) else value
    return None


def extract_number(text: Any) -> Optional[float]:
    """'$24,995.50' → 24995.5；取不到数字返回 None。"""
    if isinstance(text, bool):
        return None
    if isinstance(text, (int, float)):
        return float(text)
    if not text:
        return None
    m = _NUMBER_RE.search(str(text))
    if not m:
        return None
    raw = m.group(0).replace(",", "")
    if not raw or raw == ".":
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _display_number(num: float) -> str:
    if num == int(num):
        return f"{int(num):,}"
    return f"{num:,.2f}".rstrip("0").rstrip(".")


def format_price(price: Any, include_dollar_sign: bool = True) -> str:
    if not _present(price) or isinstance(price, bool):
        return ""
    if isinstance(price, str):
        cleaned = re.sub(r"[^0-9.]", "", price)
        try:
            num = float(cleaned)
        except ValueError:
            return ""
    else:
        num = float(price)
    formatted = _display_number(num)
    return f"${formatted}" if include_dollar_sign else formatted


def whole_digits(value: Any) -> Optional[str]:
    """价格/里程只写整数位的数字：21000.0 → '21000'，'$21,000.99' → '21000'。"""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(int(value))
    text = str(value).split(".")[0]
    digits = re.sub(r"[^0-9]", "", text)
    return digits or None


def normalize_transmission(value: Any) -> str:
    text = str(value).strip()
    low = text.lower()
    if "auto" in low:
        return "Automatic"
    if "manual" in low or "standard" in low:
        return "Manual"
    return text


def _scalar(value: Any) -> str:
    if isinstance(value, float) and value == int(value):
        return str(int(value))
    return str(value).strip()


def compose_title(record: Mapping[str, Any]) -> Optional[str]:
    parts = [record_value(record, k) for k in ("year", "make", "model")]
    if not all(parts):
        return None
    title = " ".join(_scalar(p) for p in parts)
    trim = record_value(record, "trim")
    if trim:
        title += f" {_scalar(trim)}"
    return title


_SPEC_LINES = (
    ("bodyType", "Body Type"),
    ("transmission", "Transmission"),
    ("drivetrain", "Drivetrain"),
    ("fuelType", "Fuel Type"),
    ("engine", "Engine"),
    ("exteriorColor", "Exterior Color"),
    ("interiorColor", "Interior Color"),
)


def compose_description(record: Mapping[str, Any]) -> str:
    """挂牌描述：标题、价格、里程、配置、库存号/VIN、原描述、经销商、原链接。"""
    blocks: list[str] = []

    title = record_value(record, "title") or compose_title(record)
    if title:
        blocks.append(str(title))

    price = record_value(record, "price")
    if price is not None:
        lines = [f"Price: {format_price(price)}"]
        msrp = record_value(record, "msrp")
        if msrp is not None and extract_number(msrp) != extract_number(price):
            lines.append(f"MSRP: {format_price(msrp)}")
        blocks.append("\n".join(lines))

    kilometers = record_value(record, "mileage", ("kilometers",))
    km_number = extract_number(kilometers)
    if km_number is not None:
        blocks.append(f"Kilometers: {_display_number(km_number)}")

    specs = [
        f"{label}: {_scalar(record_value(record, key))}"
        for key, label in _SPEC_LINES
        if record_value(record, key) is not None
    ]
    if specs:
        blocks.append("\n".join(specs))

    ids = []
    if record_value(record, "stockNumber") is not None:
        ids.append(f"Stock Number: {_scalar(record_value(record, 'stockNumber'))}")
    if record_value(record, "vin") is not None:
        ids.append(f"VIN: {_scalar(record_value(record, 'vin'))}")
    if ids:
        blocks.append("\n".join(ids))

    body = record_value(record, "description")
    if body:
        blocks.append(str(body))

    dealer = record_value(record, "dealerName")
    if dealer:
        line = f"Available at: {dealer}"
        location = record_value(record, "location", ("dealerLocation",))
        if location:
            line += f", {location}"
        blocks.append(line)

    source = record_value(record, "sourceUrl")
    if source:
        blocks.append(f"Original listing: {source}")

    return "\n\n".join(blocks)


def derive_field_value(
    record: Mapping[str, Any], spec: FieldSpec, config: EngineConfig
) -> Optional[str]:
    """返回要写入该字段的字符串；None 表示跳过此字段。"""
    key = spec.key
    if key == "title":
        value = record_value(record, "title")
        if value is None and config.compose_title:
            value = compose_title(record)
    elif key == "description":
        if config.compose_description:
            value = compose_description(record) or None
        else:
            value = record_value(record, "description")
    elif key == "vehicleType":
        value = record_value(record, "vehicleType") or config.default_vehicle_type
    else:
        value = record_value(record, key, spec.aliases)

    if not _present(value):
        return None
    if key in ("price", "mileage"):
        return whole_digits(value)
    if key == "transmission":
        return normalize_transmission(value)
    return _scalar(value)

"""
PHP compatibility helpers

The mobile client was written against a PHP backend, so numbers travel as
strings, dates use PHP formats and offer details are stored PHP-serialized.
"""
import json
import re
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any


def round2(value) -> float:
    """PHP ``round($x, 2)``: half away from zero"""
    return float(Decimal(str(to_float(value))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def number_format(value, decimals: int = 2) -> str:
    """PHP ``number_format($x, 2, '.', '')``"""
    quantum = Decimal(1).scaleb(-decimals)
    return str(Decimal(str(to_float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def to_float(value, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def num_str(value) -> str:
    """String form of a number the way PHP echoes it"""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def php_date(value) -> str:
    """``Y-m-d H:i:s``"""
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def status_date(value: datetime = None) -> str:
    """``d-m-Y h:i:sa`` as stored in order status histories"""
    value = value or datetime.now()
    return value.strftime("%d-%m-%Y %I:%M:%S") + value.strftime("%p").lower()


def stringify(value: Any) -> Any:
    """Recursively turn numbers into strings and ``None`` into ``""``"""
    if value is None:
        return ""
    if isinstance(value, dict):
        return {key: stringify(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [stringify(item) for item in value]
    if isinstance(value, (bool, int, float, Decimal)):
        return num_str(value)
    if isinstance(value, (datetime, date)):
        return php_date(value)
    return value


def row_dict(row) -> dict:
    """SQLAlchemy ``Row`` to a plain dict, ``None`` passes through"""
    if row is None:
        return None
    return dict(row._mapping)


def load_status(raw) -> list:
    """Decode an order status history; bad data gives an empty history"""
    if not raw:
        return []
    if isinstance(raw, list):
        return raw
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return decoded if isinstance(decoded, list) else []


def php_serialize(value: Any) -> str:
    """Minimal PHP ``serialize()`` for scalars, lists and dicts"""
    if value is None:
        return "N;"
    if isinstance(value, bool):
        return f"b:{int(value)};"
    if isinstance(value, int):
        return f"i:{value};"
    if isinstance(value, (float, Decimal)):
        return f"d:{num_str(float(value))};"
    if isinstance(value, (list, tuple)):
        value = dict(enumerate(value))
    if isinstance(value, dict):
        body = "".join(php_serialize(key) + php_serialize(item) for key, item in value.items())
        return f"a:{len(value)}:{{{body}}}"
    text = str(value)
    return f's:{len(text.encode("utf-8"))}:"{text}";'


class _Unserializer:
    """Recursive descent reader for PHP ``serialize()`` output"""

    def __init__(self, data: str):
        self.data = data.encode("utf-8")
        self.pos = 0

    def _read_until(self, delimiter: bytes) -> bytes:
        end = self.data.index(delimiter, self.pos)
        chunk = self.data[self.pos:end]
        self.pos = end + len(delimiter)
        return chunk

    def read(self):
        kind = self.data[self.pos:self.pos + 1]
        self.pos += 2
        if kind == b"N":
            return None
        if kind == b"b":
            return self._read_until(b";") == b"1"
        if kind == b"i":
            return int(self._read_until(b";"))
        if kind == b"d":
            return float(self._read_until(b";"))
        if kind == b"s":
            length = int(self._read_until(b":"))
            # skip opening quote
            start = self.pos + 1
            text = self.data[start:start + length].decode("utf-8")
            self.pos = start + length + 2
            return text
        if kind == b"a":
            count = int(self._read_until(b":"))
            self.pos += 1
            result = {}
            for _ in range(count):
                key = self.read()
                result[key] = self.read()
            self.pos += 1
            return result
        raise ValueError(f"Unsupported PHP type at offset {self.pos - 2}")


def php_unserialize(data: str):
    return _Unserializer(data).read()


def parse_offer_details(raw) -> dict:
    """Decode ``orders.offer_type_details`` stored as JSON or PHP-serialized"""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        decoded = json.loads(raw)
        if isinstance(decoded, dict):
            return decoded
    except (TypeError, ValueError):
        pass
    try:
        decoded = php_unserialize(raw)
        if isinstance(decoded, dict):
            return decoded
    except (ValueError, IndexError, UnicodeDecodeError):
        pass
    details = {}
    for key in ("type", "offer_name", "cashback_name"):
        match = re.search(r's:\d+:"%s";s:\d+:"([^"]*)"' % key, raw)
        if match:
            details[key] = match.group(1)
    return details

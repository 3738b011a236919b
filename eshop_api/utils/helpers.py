"""
Shared helpers: response envelope, request payloads, validation,
image URLs and system settings
"""
import json
import re
import time
from typing import Any, Dict
from urllib.parse import urlparse

from cachetools import TTLCache
from fastapi import Request
from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from eshop_api.config import settings
from eshop_api.exceptions import ValidationError
from eshop_api.utils.php import stringify

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def response(error: bool, message: str = "", data=None, **extra) -> dict:
    """Build the ``{error, message, data}`` envelope with extra keys appended"""
    body = {"error": bool(error), "message": message or "", "data": [] if data is None else data}
    body.update(extra)
    return body


async def get_payload(request: Request) -> Dict[str, Any]:
    """Merge query string and JSON or form body into one dict"""
    payload = dict(request.query_params)
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        body = await request.body()
        if body:
            decoded = json.loads(body)
            if isinstance(decoded, dict):
                payload.update(decoded)
    elif "form" in content_type:
        form = await request.form()
        payload.update({key: value for key, value in form.items()})
    return payload


def validate(data: dict, rules: Dict[str, str]):
    """CodeIgniter style validation; raises ``ValidationError`` with joined messages"""
    errors = []
    for field, rule_string in rules.items():
        value = data.get(field)
        present = value is not None and value != "" and value is not False
        for rule in rule_string.split("|"):
            if rule == "required" and not present and value != 0:
                errors.append(f"The {field} field is required.")
            elif rule == "numeric" and present and not is_numeric(value):
                errors.append(f"The {field} field must be numeric.")
            elif rule == "valid_email" and present and not EMAIL_RE.match(str(value)):
                errors.append(f"The {field} field must contain a valid email address.")
    if errors:
        raise ValidationError(" ".join(errors))


def is_numeric(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    try:
        float(str(value).strip())
    except ValueError:
        return False
    return True


def split_ids(value) -> list:
    """Comma separated ids (or a list) to a list of stripped strings"""
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip() != ""]
    return [part.strip() for part in str(value).split(",") if part.strip() != ""]


def image_url(path, size: str = "") -> str:
    """Absolute CDN URL for a stored media path"""
    base = settings.image_base_url
    if not path:
        return settings.no_image_url
    path = str(path)
    if path.startswith(("http://", "https://")):
        if path.startswith(base):
            return path
        for host in settings.legacy_image_hosts:
            if path.startswith(host):
                return path.replace(host, base, 1)
        parsed = urlparse(path)
        return f"{base}{parsed.path.lstrip('/')}"
    filename = path.split("/")[-1]
    if size in ("thumb", "sm"):
        return f"{base}{settings.media_path}thumb-sm/{filename}"
    if size == "md":
        return f"{base}{settings.media_path}thumb-md/{filename}"
    if not path.startswith("uploads/"):
        path = f"uploads/{path}"
    return f"{base}{path}"


class SettingsCache:
    """Per-process TTL cache for rows of the ``settings`` table, with hit counters for /admin"""

    def __init__(self, ttl: float = 300, maxsize: int = 256, timer=time.monotonic):
        self._cache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self.hits = 0
        self.misses = 0

    @property
    def ttl(self):
        return self._cache.ttl

    def get(self, key: str):
        value = self._cache.get(key)
        if value is None:
            self.misses += 1
        else:
            self.hits += 1
        return value

    def set(self, key: str, value):
        self._cache[key] = value

    def clear(self) -> int:
        self._cache.expire()
        count = len(self._cache)
        self._cache.clear()
        return count

    def stats(self) -> dict:
        self._cache.expire()
        return {"keys": len(self._cache), "hits": self.hits, "misses": self.misses, "ttl": self.ttl}


settings_cache = SettingsCache()


def get_settings(db: Session, variable: str = "system_settings", is_json: bool = False):
    """Read ``settings.value`` by variable; JSON values come back with numbers as strings"""
    raw = settings_cache.get(variable)
    if raw is None:
        row = db.execute(
            text("SELECT value FROM settings WHERE variable = :variable"),
            {"variable": variable}
        ).fetchone()
        if row is None:
            return {} if is_json else ""
        raw = row.value or ""
        settings_cache.set(variable, raw)
    if not is_json:
        return re.sub(r"\\(.)", r"\1", raw)
    try:
        decoded = json.loads(raw)
    except ValueError:
        logger.error(f"Invalid JSON in settings.{variable}")
        return {}
    return stringify(decoded) if isinstance(decoded, (dict, list)) else {}


def system_settings(db: Session) -> dict:
    return get_settings(db, "system_settings", True)

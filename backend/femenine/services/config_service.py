# Overview: SystemConfig key/value store.

from __future__ import annotations

from ..extensions import db
from ..models import SystemConfig
from ..validation import NotFoundError, ValidationError, clean_str

MAX_KEY_LENGTH = 128


def _clean_key(key) -> str:
    return clean_str(key, "key", max_length=MAX_KEY_LENGTH, required=True)


def _to_text(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def get_all() -> dict[str, str]:
    return {c.key: c.value for c in db.session.query(SystemConfig).order_by(SystemConfig.key).all()}


def get_entry(key: str) -> SystemConfig:
    entry = db.session.query(SystemConfig).filter_by(key=key).first()
    if entry is None:
        raise NotFoundError("Configuration not found")
    return entry


def get_value(key: str, default: str | None = None) -> str | None:
    entry = db.session.query(SystemConfig).filter_by(key=key).first()
    return entry.value if entry else default


def _upsert(key: str, value, description=None) -> SystemConfig:
    entry = db.session.query(SystemConfig).filter_by(key=key).first()
    if entry is None:
        entry = SystemConfig(key=key, value=_to_text(value))
        db.session.add(entry)
    else:
        entry.value = _to_text(value)
    if description:
        entry.description = clean_str(description, "description", max_length=255)
    return entry


def set_value(key: str, value, description=None) -> SystemConfig:
    """Create or update one entry. An empty value is rejected."""
    key = _clean_key(key)
    if value is None or value == "":
        raise ValidationError("value is required")
    entry = _upsert(key, value, description)
    db.session.commit()
    return entry


def set_many(values: dict) -> list[SystemConfig]:
    """
    Bulk upsert {key: value}. Empty values are skipped, not cleared.
    """
    if not isinstance(values, dict):
        raise ValidationError("Expected an object of key/value pairs")
    entries = []
    for raw_key, value in values.items():
        if value is None or value == "":
            continue
        entries.append(_upsert(_clean_key(raw_key), value))
    db.session.commit()
    return entries

from __future__ import annotations

import json
import math
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.gymadmin.audit import record_event
from app.gymadmin.utils import parse_bool

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.gymadmin.models import User


DEFAULT_SETTINGS: dict[str, dict[str, Any]] = {
    "general": {
        "studioName": "GymXam",
        "email": "info@gymxam.com",
        "phone": "+1 (555) 123-4567",
        "address": "123 Fitness Ave, New York, NY 10001",
        "cancelHours": "8",
        "classCapacity": "5",
    },
    "notifications": {
        "sendBookingConfirmations": True,
        "sendCancellationNotifications": True,
        "sendRenewalReminders": True,
        "reminderDays": "7",
        "allowClientEmails": False,
    },
    "packages": {
        "package8Price": "120",
        "package12Price": "160",
        "packageDuration": "30",
        "allowAutoRenewal": False,
    },
}
VALID_SECTIONS = tuple(DEFAULT_SETTINGS)

# Keys that must hold a non-negative whole number.
_INTEGER_KEYS = {"cancelHours", "classCapacity", "reminderDays", "packageDuration"}
# Keys that must hold a non-negative price (decimals allowed).
_PRICE_KEYS = {"package8Price", "package12Price"}
# Keys that must be at least 1.
_POSITIVE_KEYS = {"classCapacity", "packageDuration"}


def _load_row(s: "Session", section: str):
    from app.gymadmin.modules.settings.models import StudioSetting

    return s.query(StudioSetting).filter(StudioSetting.section == section).one_or_none()


def get_section(s: "Session", section: str) -> dict[str, Any]:
    """Stored values merged over the defaults; unknown stored keys are ignored."""
    if section not in DEFAULT_SETTINGS:
        raise ValueError(f"Unknown settings section: {section}")
    merged = dict(DEFAULT_SETTINGS[section])
    row = _load_row(s, section)
    if row and row.values_json:
        try:
            stored = json.loads(row.values_json)
        except json.JSONDecodeError:
            stored = {}
        if isinstance(stored, dict):
            for key, value in stored.items():
                if key in merged:
                    merged[key] = value
    return merged


def get_all_settings(s: "Session") -> dict[str, dict[str, Any]]:
    return {section: get_section(s, section) for section in VALID_SECTIONS}


def get_int_setting(s: "Session", section: str, key: str) -> int:
    """Whole-number setting, falling back to the default when the stored value is unusable."""
    value = get_section(s, section).get(key)
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return int(DEFAULT_SETTINGS[section][key])


def default_class_capacity(s: "Session") -> int:
    return max(1, get_int_setting(s, "general", "classCapacity"))


def package_duration_days(s: "Session") -> int:
    return max(1, get_int_setting(s, "packages", "packageDuration"))


def validate_settings_payload(section: str, settings: Any) -> list[str]:
    errors: list[str] = []
    if section not in DEFAULT_SETTINGS:
        errors.append(f"Invalid section. Must be one of: {', '.join(VALID_SECTIONS)}")
        return errors
    if not isinstance(settings, dict):
        errors.append("Settings must be an object.")
        return errors

    for key, value in settings.items():
        if key not in DEFAULT_SETTINGS[section]:
            continue
        if key in _INTEGER_KEYS:
            raw = str(value).strip() if value is not None else ""
            if not (raw.isascii() and raw.isdigit()):
                errors.append(f"{key} must be a whole number.")
            elif key in _POSITIVE_KEYS and int(raw) < 1:
                errors.append(f"{key} must be at least 1.")
        elif key in _PRICE_KEYS:
            try:
                price = float(str(value).strip())
            except (TypeError, ValueError):
                errors.append(f"{key} must be a number.")
                continue
            if not math.isfinite(price):
                errors.append(f"{key} must be a number.")
                continue
            if price < 0:
                errors.append(f"{key} cannot be negative.")
    return errors


def update_section(s: "Session", section: str, settings: dict, user: "User") -> dict[str, Any]:
    """Validate and persist one section; returns the merged section."""
    from app.gymadmin.modules.settings.models import StudioSetting

    errors = validate_settings_payload(section, settings)
    if errors:
        raise ValueError(" ".join(errors))

    current = get_section(s, section)
    changes = {}
    for key, default in DEFAULT_SETTINGS[section].items():
        if key not in settings:
            continue
        if isinstance(default, bool):
            new_value: Any = parse_bool(settings[key])
        else:
            new_value = str(settings[key]).strip()
        if new_value != current.get(key):
            changes[key] = {"old": current.get(key), "new": new_value}
            current[key] = new_value

    row = _load_row(s, section)
    if row is None:
        row = StudioSetting(section=section)
        s.add(row)
    row.values_json = json.dumps(current, sort_keys=True)
    row.updated_at = datetime.utcnow()
    row.updated_by_user_id = user.id
    s.flush()

    record_event(
        s,
        actor=user,
        action="settings.update",
        entity_type="StudioSetting",
        entity_id=section,
        metadata={"changes": changes},
    )
    return current


def ensure_default_settings(s: "Session") -> int:
    """Create missing section rows with default values. Returns rows created."""
    from app.gymadmin.modules.settings.models import StudioSetting

    created = 0
    for section, values in DEFAULT_SETTINGS.items():
        if _load_row(s, section) is None:
            s.add(StudioSetting(section=section, values_json=json.dumps(values, sort_keys=True)))
            created += 1
    if created:
        s.flush()
    return created

"""
Central constants for the GymXam admin application.
"""
from __future__ import annotations

# Package types offered at the front desk: type -> (label, class allowance)
PACKAGE_TYPES = {
    "8-class": ("8-Class Package", 8),
    "12-class": ("12-Class Package", 12),
    "unlimited": ("Unlimited Package", None),
}

# Unlimited packages still carry a counter; this is large enough to never run out in a month.
UNLIMITED_CLASS_ALLOWANCE = 999

# Clients whose package ends within this many days are shown as "warning".
EXPIRY_WARNING_DAYS = 7

# "Delete past classes" keeps the last week of history.
PAST_CLASS_RETENTION_DAYS = 7

# Client status values (derived, never stored)
CLIENT_STATUS_ACTIVE = "active"
CLIENT_STATUS_WARNING = "warning"
CLIENT_STATUS_EXPIRED = "expired"

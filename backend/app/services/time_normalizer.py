from __future__ import annotations

import re

CLOCK_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
MERIDIEM_MARKERS = {"am", "pm"}


def normalize_time(raw: str | None) -> str | None:
    """Return the 24-hour ``HH:MM`` comparison key for ``raw`` or None when unparseable.

    ``"9:00 AM"`` and ``"09:00"`` map to the same key. A trailing token that is not
    ``AM``/``PM`` is ignored, so ``"9:00 XM"`` reads as 24-hour ``09:00``. Hour and
    minute values are not range checked.
    """
    if not raw or not raw.strip():
        return None

    parts = raw.strip().split()
    match = CLOCK_PATTERN.match(parts[0])
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))

    marker = parts[1].lower() if len(parts) > 1 else ""
    if marker not in MERIDIEM_MARKERS:
        marker = ""
    if marker == "pm" and hours != 12:
        hours += 12
    elif marker == "am" and hours == 12:
        hours = 0

    return f"{hours:02d}:{minutes:02d}"

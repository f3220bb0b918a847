from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

DEFAULT_ASPECT_RATIO = "1:1"

# Declaration order is the tie-break order: the earliest label wins on equal distance.
ASPECT_RATIO_LABELS: tuple[str, ...] = ("16:9", "9:16", "1:1", "4:3", "3:4")


def _parse_ratio(aspect_ratio: str) -> tuple[int, int] | None:
    s = (aspect_ratio or "").strip()
    if ":" not in s:
        return None
    try:
        a, b = s.split(":", 1)
        return int(a), int(b)
    except ValueError:
        return None


def _ratio_value(label: str) -> float:
    parsed = _parse_ratio(label)
    if parsed is None:
        raise ValueError(f"invalid aspect ratio label: {label!r}")
    a, b = parsed
    return a / b


STANDARD_RATIOS: dict[str, float] = {label: _ratio_value(label) for label in ASPECT_RATIO_LABELS}


def closest_aspect_ratio(width: int, height: int) -> str:
    """
    Pick the standard aspect ratio label nearest to width/height.

    Non-positive dimensions cannot be measured, so they get the default label.
    """
    if width <= 0 or height <= 0:
        logger.debug("cannot derive aspect ratio from %sx%s; using default", width, height)
        return DEFAULT_ASPECT_RATIO

    image_ratio = width / height
    closest = DEFAULT_ASPECT_RATIO
    smallest_diff = float("inf")
    for label, value in STANDARD_RATIOS.items():
        diff = abs(image_ratio - value)
        if diff < smallest_diff:
            smallest_diff = diff
            closest = label
    return closest

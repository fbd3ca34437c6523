"""
Inscription year parsing.
"""

import math
import re
from typing import Optional

# Leading integer, as JavaScript's parseInt reads it ("1987-06-01" -> 1987)
_LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")


def parse_inscription_year(value) -> Optional[int]:
    """Parse an inscription year from a number or string.

    Any failure means "absent" rather than an error; callers apply the
    default year.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            return int(match.group(1))
        return None
    return None

"""
Input validation helpers for native tools.
"""

from datetime import datetime
from typing import Optional

import pytz

from errors import ValidationError


def opt_string(args: dict, key: str, default: Optional[str] = None) -> Optional[str]:
    """Extract optional string from args."""
    val = args.get(key)
    if val is None:
        return default
    val = val if isinstance(val, str) else str(val)
    return val.strip() or default


def require_string(args: dict, key: str) -> str:
    """Extract required string from args."""
    val = opt_string(args, key)
    if not val:
        raise ValidationError(f"Missing required parameter: {key}")
    return val


def parse_iso_datetime(value: str, key: str) -> datetime:
    """Parse an ISO 8601 date-time, keeping any offset it carries."""
    try:
        # fromisoformat only accepts a trailing Z from 3.11 on
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Invalid {key} '{value}': expected an ISO 8601 date-time such as 2025-11-17T13:00:00"
        )


def require_time_zone(value: str) -> str:
    """Check that value is a known IANA time zone id."""
    try:
        pytz.timezone(value)
    except pytz.UnknownTimeZoneError:
        raise ValidationError(
            f"Unknown time zone '{value}': expected an IANA id such as America/New_York"
        )
    return value


def reject_undeclared(args: dict, accepted: list, tool_name: str) -> None:
    """Raise if args holds a key the tool does not declare."""
    unknown = sorted(set(args) - set(accepted))
    if unknown:
        raise ValidationError(
            f"Tool '{tool_name}' does not accept: {', '.join(unknown)}",
            {"accepted": accepted},
        )

"""Text helpers shared by the command handlers."""

import datetime
from typing import Any, Dict, List, Optional

NOT_AVAILABLE = "N/A"


def format_date(value: Any) -> str:
    """Render an ISO-8601 timestamp from the directory, or ``N/A``."""
    if not value:
        return NOT_AVAILABLE
    text = str(value)
    try:
        parsed = datetime.datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return text
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(datetime.timezone.utc)
        return parsed.strftime("%Y-%m-%d %H:%M:%S UTC")
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def profile_value(value: Any) -> str:
    """A profile attribute for display; absent values read ``N/A``."""
    if value is None or value == "":
        return NOT_AVAILABLE
    return str(value)


def format_list(values: Optional[List[Any]]) -> str:
    if not values:
        return "[]"
    return ", ".join(str(v) for v in values)


def user_line(index: int, user: Dict[str, Any]) -> str:
    """Numbered summary entry for a user listing."""
    profile = user.get("profile") or {}
    name = f"{profile.get('firstName') or ''} {profile.get('lastName') or ''}".strip()
    return "\n".join([
        f"{index}. {name} ({profile.get('email') or 'No email'})",
        f" - ID: {user.get('id')}",
        f" - Status: {user.get('status') or 'Unknown'}",
        f" - Created: {format_date(user.get('created'))}",
        f" - Last Updated: {format_date(user.get('lastUpdated'))}",
    ])


def pagination_footer(records: List[Dict[str, Any]], limit: int, noun: str,
                      total_label: Optional[str] = None) -> str:
    """Trailer for a listing page.

    A full page gets a pointer to the next page (the last id, for ``after``);
    a short page gets the total.
    """
    if records and len(records) >= limit:
        return "\n".join([
            "Pagination:",
            f"- Total {noun} shown: {len(records)}",
            f"- For next page, use 'after' parameter with value: {records[-1].get('id')}",
        ])
    return f"{total_label or f'Total {noun}'}: {len(records)}"

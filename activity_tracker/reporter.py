from __future__ import annotations

from datetime import timezone
from zoneinfo import ZoneInfo

from .models import ActivityEvent, CacheRecord, MonthlyRow
from .pairing import build_sessions
from .timeutil import MS_IN_HOUR, from_millis


def format_duration(total_ms: int) -> str:
    """Render a duration as `Xh Ym`, flooring to whole minutes."""
    total_minutes = max(0, int(total_ms)) // 60_000
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def monthly_breakdown(
    events: list[ActivityEvent],
    tz: ZoneInfo | timezone = timezone.utc,
) -> list[MonthlyRow]:
    """Bucket each login/logout pair by the login's YYYY-MM month."""
    months: dict[str, list[float]] = {}
    for session in build_sessions(events):
        key = from_millis(session.start, tz).strftime("%Y-%m")
        bucket = months.setdefault(key, [0, 0.0])
        bucket[0] += 1
        bucket[1] += session.duration_ms / MS_IN_HOUR

    return [
        MonthlyRow(month=month, sessions=int(sessions), hours=round(hours, 2))
        for month, (sessions, hours) in sorted(months.items())
    ]


def build_report_content(
    user_label: str,
    record: CacheRecord,
    rows: list[MonthlyRow],
    tz: ZoneInfo | timezone = timezone.utc,
) -> str:
    header = f"**Login/Logout Activity - {user_label}**"
    total_line = f"Total: {format_duration(record.total_duration_ms)}"

    if not record.activities:
        return f"{header}\n{total_line}\nNo recorded activity."

    lines = [header, total_line, "", "Monthly breakdown:"]
    lines.extend(f"- {row.month}: {row.sessions} sessions, {row.hours:.2f}h" for row in rows)
    lines.extend(["", "Events:"])
    lines.extend(
        f"- {event.kind:<6} {from_millis(event.timestamp, tz).strftime('%Y-%m-%d %H:%M')}"
        for event in record.activities
    )
    return "\n".join(lines)

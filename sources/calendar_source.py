"""Mini calendar data source -- upcoming reminders from a YAML file.

Publishes today's date and the next few incomplete reminders due within
REMINDER_WINDOW_DAYS, soonest first. Reminders without a due time sort
last and show "No due time".

Reminders file example (reminders.yaml):
    reminders:
      - title: Call the dentist
        due: "2026-10-20 14:30"
      - title: Water plants
      - title: Submit report
        due: "2026-10-21T09:00"
        done: true
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import yaml

from config import MAX_REMINDERS, REMINDER_WINDOW_DAYS
from core.data_source import DataSource
from core.errors import ProviderFailure
from core.registry import register_source

logger = logging.getLogger(__name__)


def parse_due(value: Any) -> Optional[datetime]:
    """YAML gives datetimes, dates or plain strings; accept all three."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip()).replace(tzinfo=None)
    except ValueError:
        logger.debug("Unparseable due date: %r", value)
        return None


def format_due(due: Optional[datetime]) -> str:
    if due is None:
        return "No due time"
    return due.strftime("%I:%M %p").lstrip("0")


def upcoming(
    entries: List[Dict],
    now: datetime,
    days: int = REMINDER_WINDOW_DAYS,
    limit: int = MAX_REMINDERS,
) -> List[Dict[str, str]]:
    """Incomplete reminders due between now and now + days, soonest first."""
    end = now + timedelta(days=days)
    picked = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("done"):
            continue
        due = parse_due(entry.get("due"))
        if due is not None and not (now <= due <= end):
            continue
        title = str(entry.get("title") or "").strip() or "Untitled reminder"
        picked.append((due, title))

    picked.sort(key=lambda item: (item[0] is None, item[0] or datetime.max))
    return [
        {"title": title, "due_text": format_due(due)}
        for due, title in picked[:limit]
    ]


@register_source("calendar")
class CalendarSource(DataSource):
    """Reads reminders from a local YAML file."""

    def __init__(self, source_id: str, config: Dict, now: Callable[[], datetime] = datetime.now):
        config.setdefault("interval", 300)  # 5 minutes
        config.setdefault("timeout", 5.0)
        super().__init__(source_id, config)
        self.path = config.get("reminders_path", "reminders.yaml")
        self._now = now

    def load_entries(self) -> List[Dict]:
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            logger.debug("Reminders file not found: %s", self.path)
            return []
        except yaml.YAMLError as exc:
            raise ProviderFailure(self.source_id, f"could not load reminders: {exc}") from exc

        if data is None:
            return []
        if isinstance(data, dict):
            data = data.get("reminders") or []
        if not isinstance(data, list):
            raise ProviderFailure(self.source_id, "reminders must be a list")
        return data

    def fetch(self) -> Optional[Dict[str, Any]]:
        now = self._now()
        items = upcoming(self.load_entries(), now)
        return {
            "day": now.strftime("%b %d, %Y"),
            "items": tuple(items),
            "status": "Upcoming reminders" if items else "No upcoming reminders",
        }

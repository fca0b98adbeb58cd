"""Notes for models backed by a view or materialized view."""
from datetime import datetime, timedelta, timezone
from typing import Optional

from analyzers.base import Analyzer
from config import settings
from core.note_codes import (
    ADD_READONLY, ADD_REFRESH, MATVIEW_STALE, NESTED_VIEW, VIEW_PROTECT, VIEW_READONLY, note,
)


class ViewNotesAnalyzer(Analyzer):
    def __init__(self, *args, nested_views: Optional[list[str]] = None, now: Optional[datetime] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.nested_views = nested_views or []
        self.now = now

    def analyze(self) -> list[str]:
        view = self.view
        if not view.exists:
            return []
        notes = []
        if not view.updatable:
            notes.append(note(None, VIEW_READONLY))
            if not self.model.readonly:
                notes.append(note(None, ADD_READONLY))
        elif not self.model.readonly:
            notes.append(note(None, VIEW_PROTECT))
        if view.materialized:
            if self.stale(view.last_refreshed):
                notes.append(note(None, MATVIEW_STALE))
            if not self.model.has_refresh:
                notes.append(note(None, ADD_REFRESH))
        notes += [note(dep, NESTED_VIEW) for dep in self.nested_views]
        return notes

    def stale(self, last_refreshed: Optional[datetime]) -> bool:
        if last_refreshed is None:
            return False
        now = _aware(self.now or datetime.now(timezone.utc))
        return now - _aware(last_refreshed) > timedelta(hours=settings.MATVIEW_STALE_HOURS)


def _aware(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts

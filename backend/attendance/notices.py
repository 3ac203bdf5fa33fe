from __future__ import annotations

import logging
from typing import List

from backend.storage import keys
from backend.storage.kv import KeyValueStoreProtocol

from .clock import PortalClock
from .errors import NotFound

logger = logging.getLogger("portal.attendance")

ALL_SEMESTERS = "all"
ALL_STUDENTS = "All Students"
_EDITABLE_FIELDS = ("title", "content", "targetAudience", "semester", "attachments")


def _posted_ms(notice: dict) -> int:
    try:
        return int(str(notice.get("id", "")).rsplit(":", 1)[-1])
    except ValueError:
        return 0


def _newest_first(notices: List[dict]) -> List[dict]:
    return sorted(notices, key=_posted_ms, reverse=True)


class NoticeService:
    def __init__(self, store: KeyValueStoreProtocol, clock: PortalClock) -> None:
        self._store = store
        self._clock = clock

    def _get(self, notice_id: str) -> dict:
        notice = self._store.get(notice_id) if notice_id.startswith(keys.NOTICE_PREFIX) else None
        if notice is None:
            raise NotFound("Notice not found")
        return notice

    def post(
        self,
        *,
        posted_by: str,
        title: str,
        content: str,
        target_audience: str = "All",
        semester: str | None = None,
        attachments: list | None = None,
    ) -> dict:
        epoch_ms = self._clock.epoch_ms()
        while True:
            notice_id = keys.notice_key(epoch_ms)
            notice = {
                "id": notice_id,
                "title": title,
                "content": content,
                "targetAudience": target_audience,
                "semester": semester or ALL_SEMESTERS,
                "attachments": attachments or [],
                "postedBy": posted_by,
                "postedOn": self._clock.today(),
                "reactions": {},
            }
            if self._store.add(notice_id, notice):
                logger.info("notice posted")
                return notice
            epoch_ms += 1

    def all_notices(self) -> List[dict]:
        return _newest_first(self._store.get_by_prefix(keys.NOTICE_PREFIX))

    def for_semester(self, semester: str | None) -> List[dict]:
        """Notices addressed to everyone or to the given semester."""
        return [
            n
            for n in self.all_notices()
            if n.get("targetAudience") == ALL_STUDENTS
            or n.get("semester") == ALL_SEMESTERS
            or (semester is not None and n.get("semester") == semester)
        ]

    def react(self, notice_id: str, *, user_id: str, reaction: str) -> dict:
        notice = self._get(notice_id)
        reactions = dict(notice.get("reactions") or {})
        reactions[user_id] = reaction
        notice["reactions"] = reactions
        self._store.set(notice_id, notice)
        return notice

    def update(self, notice_id: str, updates: dict) -> dict:
        notice = self._get(notice_id)
        notice.update({k: v for k, v in updates.items() if k in _EDITABLE_FIELDS})
        self._store.set(notice_id, notice)
        logger.info("notice updated")
        return notice

    def delete(self, notice_id: str) -> None:
        self._get(notice_id)
        self._store.delete(notice_id)
        logger.info("notice deleted")


__all__ = ["NoticeService", "ALL_SEMESTERS", "ALL_STUDENTS"]

"""
Transient user notices for failures reachable from user interaction.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

log = logging.getLogger("lazypage.notices")


@dataclass(eq=False)
class Notice:
    """A dismissible message that expires on its own."""

    message: str
    level: str = "error"
    created_at: float = field(default_factory=time.time)
    duration: float = 4.0
    dismissed: bool = False

    @property
    def expires_at(self) -> float:
        return self.created_at + self.duration


class NoticeCenter:
    """Shows notices and expires them after their duration."""

    def __init__(self, default_duration: float = 4.0):
        self.default_duration = default_duration
        self._notices: List[Notice] = []
        self._expiry: Dict[int, asyncio.TimerHandle] = {}

    def show(self, message: str, level: str = "error", duration: Optional[float] = None) -> Notice:
        notice = Notice(message=message, level=level, duration=self.default_duration if duration is None else duration)
        self._notices.append(notice)
        log.info("Notice (%s): %s", level, message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside a loop the notice stays until dismissed
            return notice
        self._expiry[id(notice)] = loop.call_later(notice.duration, self.dismiss, notice)
        return notice

    def dismiss(self, notice: Notice) -> None:
        notice.dismissed = True
        timer = self._expiry.pop(id(notice), None)
        if timer is not None:
            timer.cancel()
        if notice in self._notices:
            self._notices.remove(notice)

    def active(self) -> List[Notice]:
        return [notice for notice in self._notices if not notice.dismissed]

    def clear(self) -> None:
        for notice in list(self._notices):
            self.dismiss(notice)

"""
Admin chat registry shared by every Telegram component.

Seeded from ADMIN_CHAT_IDS at start-up. ``/addadmin`` extends it for the
lifetime of the process only; restarts fall back to the configured list.
"""

import logging
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)


class AdminRegistry:
    def __init__(self, chat_ids: Iterable[int] = ()):
        self._chat_ids: List[int] = []
        for chat_id in chat_ids:
            if chat_id not in self._chat_ids:
                self._chat_ids.append(chat_id)

    def add(self, chat_id: int) -> bool:
        """Register ``chat_id``; False when it already was an admin."""
        if chat_id in self._chat_ids:
            return False
        self._chat_ids.append(chat_id)
        logger.info(f"Added admin chat {chat_id}")
        return True

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._chat_ids

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._chat_ids))

    def __len__(self) -> int:
        return len(self._chat_ids)

    def __repr__(self) -> str:
        return f"AdminRegistry({self._chat_ids!r})"


def as_registry(chat_ids: Iterable[int]) -> AdminRegistry:
    """Share an existing registry; wrap any other iterable in a new one."""
    if isinstance(chat_ids, AdminRegistry):
        return chat_ids
    return AdminRegistry(chat_ids)

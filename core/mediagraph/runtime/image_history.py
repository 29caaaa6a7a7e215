"""Bounded, newest-first history of generated images across workflows."""

import secrets
import string
import time
from collections import deque
from collections.abc import Iterable

from mediagraph.config import DEFAULT_IMAGE_HISTORY_LIMIT
from mediagraph.schemas.workflow import ImageHistoryItem

_ALPHABET = string.ascii_lowercase + string.digits


def now_ms() -> int:
    return int(time.time() * 1000)


def random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


class ImageHistory:
    def __init__(self, limit: int = DEFAULT_IMAGE_HISTORY_LIMIT, items: Iterable[ImageHistoryItem] = ()):
        self._items: deque[ImageHistoryItem] = deque(items, maxlen=limit)

    def add(
        self,
        image: str,
        prompt: str,
        aspect_ratio: str | None = None,
        model: str | None = None,
        timestamp: int | None = None,
    ) -> ImageHistoryItem:
        timestamp = timestamp if timestamp is not None else now_ms()
        item = ImageHistoryItem(
            id=f"{timestamp}-{random_suffix()}",
            image=image,
            timestamp=timestamp,
            prompt=prompt,
            aspect_ratio=aspect_ratio,
            model=model,
        )
        self._items.appendleft(item)
        return item

    def items(self) -> list[ImageHistoryItem]:
        return list(self._items)

    def replace(self, items: Iterable[ImageHistoryItem]) -> None:
        self._items = deque(items, maxlen=self._items.maxlen)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional


class ImageNameCache:
    """
    Image id -> image name, scoped to one region evaluation.
    A stored None means the lookup already happened and produced nothing.
    """

    def __init__(self) -> None:
        self._names: Dict[str, Optional[str]] = {}
        self._lock = threading.Lock()

    def __contains__(self, image_id: str) -> bool:
        with self._lock:
            return image_id in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def get(self, image_id: str) -> Optional[str]:
        with self._lock:
            return self._names.get(image_id)

    def put_if_absent(self, image_id: str, name: Optional[str]) -> Optional[str]:
        """First write wins; returns the value held after the call."""
        with self._lock:
            return self._names.setdefault(image_id, name)

    def resolve(self, image_id: str, resolver: Callable[[str], Optional[str]]) -> Optional[str]:
        with self._lock:
            if image_id in self._names:
                return self._names[image_id]
        return self.put_if_absent(image_id, resolver(image_id))

"""LRU cache for OCR results keyed by image content fingerprints."""

from collections import OrderedDict
from typing import Any, Hashable, Optional

import numpy as np

FINGERPRINT_PREFIX_BYTES = 1024


def fingerprint(data: Any) -> str:
    """Compute a cache key from the logical byte content of ``data``.

    Works on anything exposing the buffer protocol (bytes, bytearray,
    memoryview slices, numpy arrays). Only the visible bytes count, so two
    views over different allocations or offsets with the same content give
    the same key.

    Key format: ``"{hash}_{length}"`` where hash is ``h * 31 + byte`` over the
    first 1024 bytes, wrapped to a signed 32-bit integer.
    """
    if isinstance(data, np.ndarray):
        view = np.ascontiguousarray(data).reshape(-1).view(np.uint8)
    else:
        view = np.frombuffer(memoryview(data).cast("B"), dtype=np.uint8)
    length = int(view.size)

    h = 0
    for byte in view[:min(length, FINGERPRINT_PREFIX_BYTES)].tolist():
        h = (h * 31 + byte) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000

    return f"{h}_{length}"


class ResultCache:
    """Least-recently-used map with a fixed capacity.

    Not thread-safe; share across threads only behind a lock.
    """

    def __init__(self, max_size: int = 10):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value and mark it most recently used."""
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: Hashable, value: Any) -> None:
        """Insert or refresh an entry, evicting the oldest one when full."""
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __repr__(self):
        return f"ResultCache(size={len(self)}, max_size={self.max_size})"


default_cache = ResultCache()

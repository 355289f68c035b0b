"""In-process key-path store.

Used for local development and tests. Values are deep-copied on the way in
and out so callers can never mutate stored state in place, which keeps the
read-modify-write behaviour identical to a remote store.
"""

import asyncio
import copy
import logging
from collections import defaultdict
from typing import Any, AsyncIterator

from chatsync.errors import WriteFailedError
from chatsync.store.base import KeyPathStore, validate_path

logger = logging.getLogger(__name__)


class MemoryKeyPathStore(KeyPathStore):
    """Dict-backed store with change subscriptions.

    Call reset() between tests to clear state.
    """

    def __init__(self, latency: float = 0.0):
        # Every read and write suspends for this long; 0 still yields to the loop
        self.latency = latency
        self._watchers: dict[str, list[asyncio.Queue]] = defaultdict(list)
        self.reset()

    def reset(self):
        """Reset all stored values and injected failures."""
        self._data: dict[str, Any] = {}
        self._failing_prefixes: set[str] = set()
        self.write_count = 0
        logger.info("Memory key-path store reset")

    def fail_writes(self, path_prefix: str):
        """Make every write under path_prefix fail until reset()."""
        self._failing_prefixes.add(path_prefix)

    def clear_failures(self):
        self._failing_prefixes.clear()

    def paths(self) -> list[str]:
        """All paths that currently hold a value."""
        return sorted(self._data)

    async def get(self, path: str) -> Any | None:
        validate_path(path)
        value = copy.deepcopy(self._data.get(path))
        await asyncio.sleep(self.latency)
        return value

    async def set(self, path: str, value: Any | None) -> None:
        validate_path(path)
        await asyncio.sleep(self.latency)
        if any(path.startswith(prefix) for prefix in self._failing_prefixes):
            raise WriteFailedError(f"Write rejected for {path}", path=path)

        if value is None:
            self._data.pop(path, None)
        else:
            self._data[path] = copy.deepcopy(value)
        self.write_count += 1
        self._notify(path)

    def _notify(self, path: str):
        for queue in self._watchers.get(path, []):
            try:
                queue.put_nowait(copy.deepcopy(self._data.get(path)))
            except asyncio.QueueFull:
                logger.warning(f"Watcher queue full for {path}, dropping snapshot")

    async def observe(self, path: str) -> AsyncIterator[Any | None]:
        validate_path(path)
        queue: asyncio.Queue = asyncio.Queue()
        self._watchers[path].append(queue)
        logger.debug(f"Observing {path}")
        try:
            yield copy.deepcopy(self._data.get(path))
            while True:
                yield await queue.get()
        finally:
            try:
                self._watchers[path].remove(queue)
                if not self._watchers[path]:
                    del self._watchers[path]
            except (KeyError, ValueError):
                pass
            logger.debug(f"Stopped observing {path}")

"""Per-run memoization of node computations.

The cache maps a node id to the single asyncio task computing that node. A
task is stored before it starts running, so every consumer that reaches the
same node during a run (fan-out, diamonds) awaits the same in-flight task and
the node's processor runs at most once.
"""

import asyncio
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

InsertHook = Callable[[int, "asyncio.Future[Any]", bool], None]
SettleHook = Callable[[int, "asyncio.Future[Any]"], None]


class EntryState(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CacheEntry:
    future: "asyncio.Future[Any]"
    state: EntryState = EntryState.IN_PROGRESS


class ExecutionCache:
    """Insert-if-absent table of node futures, scoped to one run.

    Args:
        on_insert: Called as ``on_insert(node_id, future, first)`` right after a
            new entry is stored; ``first`` is True for the run's first entry
        on_settle: Called as ``on_settle(node_id, future)`` once a stored future
            finishes, successfully or not
        is_cancelled: Returns True once the owning run has been cancelled
    """

    def __init__(
        self,
        on_insert: Optional[InsertHook] = None,
        on_settle: Optional[SettleHook] = None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ):
        self._entries: Dict[int, CacheEntry] = {}
        self._on_insert = on_insert
        self._on_settle = on_settle
        self._is_cancelled = is_cancelled

    def get_or_create(
        self, node_id: int, factory: Callable[[], Awaitable[Any]]
    ) -> Tuple["asyncio.Future[Any]", bool]:
        """Return the future for ``node_id``, creating it if absent.

        Must be called from within a running event loop. ``factory`` is only
        invoked when no entry exists yet.

        Returns:
            Tuple of (future, created)
        """
        entry = self._entries.get(node_id)
        if entry is not None:
            return entry.future, False

        first = not self._entries
        future = asyncio.ensure_future(factory())
        self._entries[node_id] = CacheEntry(future)

        # Registered before any consumer awaits, so settlement bookkeeping
        # runs ahead of the consumers' wake-ups.
        future.add_done_callback(functools.partial(self._settle, node_id))
        if self._on_insert is not None:
            self._on_insert(node_id, future, first)

        return future, True

    def _settle(self, node_id: int, future: "asyncio.Future[Any]") -> None:
        entry = self._entries[node_id]
        if future.cancelled() or future.exception() is not None:
            entry.state = EntryState.FAILED
        else:
            entry.state = EntryState.COMPLETED

        if self._on_settle is not None:
            self._on_settle(node_id, future)

    def lookup(self, node_id: int) -> Optional["asyncio.Future[Any]"]:
        entry = self._entries.get(node_id)
        return entry.future if entry is not None else None

    def state(self, node_id: int) -> Optional[EntryState]:
        entry = self._entries.get(node_id)
        return entry.state if entry is not None else None

    def is_in_progress(self, node_id: int) -> bool:
        return self.state(node_id) is EntryState.IN_PROGRESS

    def node_ids(self) -> List[int]:
        return list(self._entries)

    def results(self) -> Dict[int, Any]:
        """Values of every entry that completed successfully."""
        return {
            node_id: entry.future.result()
            for node_id, entry in self._entries.items()
            if entry.state is EntryState.COMPLETED
        }

    @property
    def cancelled(self) -> bool:
        return self._is_cancelled is not None and self._is_cancelled()

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

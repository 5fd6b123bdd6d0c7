"""Undo/redo history of graph snapshots."""

import asyncio
import json
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from ..core.errors import StaleSnapshotError
from .graph import Graph

logger = logging.getLogger("ffgraph")

DEFAULT_MAX_HISTORY = 10
DEFAULT_DEBOUNCE = 0.25


class GraphUndoManager:
    """Bounded history of serialized graph states.

    Mutations are coalesced: :meth:`enqueue_snapshot` restarts a debounce
    timer on the running event loop and only the last state captured
    before it fires is committed. Without a running loop the snapshot
    commits immediately.

    While a snapshot is being restored, :attr:`is_applying` is set and
    snapshot requests are ignored, so restoring never records history.
    """

    def __init__(
        self,
        graph: Graph,
        max_history: int = DEFAULT_MAX_HISTORY,
        debounce: float = DEFAULT_DEBOUNCE,
        watch: bool = False,
    ):
        self.graph = graph
        self.max_history = max_history
        self.debounce = debounce
        self.history: list[str] = []
        self.current_index = -1
        self.is_applying = False
        self._pending: Optional[str] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._batch_depth = 0
        self.reset_history()
        if watch:
            graph.add_listener(self.enqueue_snapshot)

    def _capture(self) -> str:
        return json.dumps(self.graph.serialize())

    def reset_history(self) -> None:
        """Drop all history and seed it with the current graph state."""
        self._cancel_timer()
        self._pending = None
        self.history = [self._capture()]
        self.current_index = 0

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def enqueue_snapshot(self) -> None:
        """Capture the graph now and commit it once edits settle."""
        if self.is_applying or self._batch_depth:
            return
        self._pending = self._capture()
        self._cancel_timer()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._commit_pending()
            return
        self._timer = loop.call_later(self.debounce, self._commit_pending)

    @contextmanager
    def batch(self) -> Iterator[None]:
        """Record every edit made inside the block as a single snapshot."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
        if not self._batch_depth:
            self.enqueue_snapshot()

    def flush(self) -> None:
        """Commit a pending snapshot without waiting for the timer."""
        self._cancel_timer()
        self._commit_pending()

    def _commit_pending(self) -> None:
        self._timer = None
        state = self._pending
        self._pending = None
        if state is None or state == self.history[self.current_index]:
            return

        del self.history[self.current_index + 1:]
        self.history.append(state)
        if len(self.history) > self.max_history:
            self.history.pop(0)
            self.current_index = self.max_history - 1
        else:
            self.current_index += 1
        logger.debug("History commit %d/%d", self.current_index + 1, len(self.history))

    def _apply_snapshot(self, state) -> bool:
        self.is_applying = True
        try:
            if not isinstance(state, str):
                err = StaleSnapshotError(f"Snapshot is not serialized text: {type(state).__name__}")
                logger.warning(str(err))
                return False
            try:
                self.graph.configure(json.loads(state))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                err = StaleSnapshotError(f"Failed to restore snapshot: {exc}")
                logger.warning(str(err))
                return False
            return True
        finally:
            self.is_applying = False

    @property
    def can_undo(self) -> bool:
        return self.current_index > 0

    @property
    def can_redo(self) -> bool:
        return self.current_index < len(self.history) - 1

    def undo(self) -> bool:
        """Restore the previous state. Returns True if the graph changed."""
        self.flush()
        if not self.can_undo:
            return False
        if not self._apply_snapshot(self.history[self.current_index - 1]):
            return False
        self.current_index -= 1
        return True

    def redo(self) -> bool:
        """Restore the next state. Returns True if the graph changed."""
        self.flush()
        if not self.can_redo:
            return False
        if not self._apply_snapshot(self.history[self.current_index + 1]):
            return False
        self.current_index += 1
        return True

    def get_current_state(self) -> str:
        return self.history[self.current_index]

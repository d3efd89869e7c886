"""Callback system for flow execution lifecycle events.

Events can be observed two ways, and both may be combined:

- plain callables passed through :class:`ExecutionOptions` for a single run
- :class:`FlowCallback` objects, passed per run or configured on the runtime
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Sequence

if TYPE_CHECKING:
    from .runtime import ExecutionResult


class FlowCallback:
    """Base class for flow callbacks.

    Override methods to receive lifecycle events during a run.
    All methods are optional - only override what you need.
    """

    def on_progress(self, progress: int, total: int) -> None:
        """Called when the estimated total is known and after each node settles.

        Args:
            progress: Number of nodes settled so far in this run
            total: Upper-bound estimate of nodes the run can touch
        """
        pass

    def on_node_start(self, node_id: int, title: str) -> None:
        """Called when an end node's branch is dispatched."""
        pass

    def on_node_complete(self, node_id: int, title: str, result: Any) -> None:
        """Called when any node reached by the run computes a value."""
        pass

    def on_node_error(self, node_id: int, title: str, error: str) -> None:
        """Called when any node reached by the run fails."""
        pass

    def on_complete(self, results: List["ExecutionResult"]) -> None:
        """Called once all end-node branches have settled."""
        pass

    def on_error(self, error: str) -> None:
        """Called when the run fails as a whole (e.g. no end nodes)."""
        pass


@dataclass
class ExecutionOptions:
    """Per-run callbacks.

    Attributes:
        on_progress: ``(progress, total)``
        on_node_start: ``(node_id, title)``
        on_node_complete: ``(node_id, title, result)``
        on_node_error: ``(node_id, title, error_message)``
        on_complete: ``(results)``
        on_error: ``(error_message)``
        callbacks: Additional FlowCallback objects for this run only
    """

    on_progress: Optional[Callable[[int, int], None]] = None
    on_node_start: Optional[Callable[[int, str], None]] = None
    on_node_complete: Optional[Callable[[int, str, Any], None]] = None
    on_node_error: Optional[Callable[[int, str, str], None]] = None
    on_complete: Optional[Callable[[List["ExecutionResult"]], None]] = None
    on_error: Optional[Callable[[str], None]] = None
    callbacks: List[FlowCallback] = field(default_factory=list)


class CallbackDispatcher:
    """Dispatches events to the run's option callables and callback objects."""

    def __init__(
        self,
        options: Optional[ExecutionOptions] = None,
        callbacks: Optional[Sequence[FlowCallback]] = None,
    ):
        self.options = options or ExecutionOptions()
        self.callbacks: List[FlowCallback] = list(callbacks or [])
        self.callbacks.extend(self.options.callbacks)

    def notify_progress(self, progress: int, total: int) -> None:
        if self.options.on_progress is not None:
            self.options.on_progress(progress, total)
        for callback in self.callbacks:
            callback.on_progress(progress, total)

    def notify_node_start(self, node_id: int, title: str) -> None:
        if self.options.on_node_start is not None:
            self.options.on_node_start(node_id, title)
        for callback in self.callbacks:
            callback.on_node_start(node_id, title)

    def notify_node_complete(self, node_id: int, title: str, result: Any) -> None:
        if self.options.on_node_complete is not None:
            self.options.on_node_complete(node_id, title, result)
        for callback in self.callbacks:
            callback.on_node_complete(node_id, title, result)

    def notify_node_error(self, node_id: int, title: str, error: str) -> None:
        if self.options.on_node_error is not None:
            self.options.on_node_error(node_id, title, error)
        for callback in self.callbacks:
            callback.on_node_error(node_id, title, error)

    def notify_complete(self, results: List["ExecutionResult"]) -> None:
        if self.options.on_complete is not None:
            self.options.on_complete(results)
        for callback in self.callbacks:
            callback.on_complete(results)

    def notify_error(self, error: str) -> None:
        if self.options.on_error is not None:
            self.options.on_error(error)
        for callback in self.callbacks:
            callback.on_error(error)

"""tqdm progress bar for flow runs."""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from ..callbacks import FlowCallback

logger = logging.getLogger(__name__)

BAR_FORMAT = (
    "{desc} {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} nodes "
    "[{elapsed}<{remaining}{postfix}]"
)


def is_jupyter() -> bool:
    """Return True inside a Jupyter kernel.

    A terminal IPython shell doesn't count: tqdm.notebook widgets only render
    in a notebook front end.
    """
    try:
        from IPython import get_ipython
    except ImportError:
        return False

    shell = get_ipython()
    return shell is not None and type(shell).__name__ == "ZMQInteractiveShell"


def tqdm_class(file: Optional[Any] = None) -> Any:
    """Notebook widget bar under Jupyter, terminal bar otherwise.

    Widgets can't be written to a stream, so an explicit ``file`` always gets
    the terminal bar.
    """
    if file is None and is_jupyter():
        from tqdm.notebook import tqdm
    else:
        from tqdm import tqdm
    return tqdm


@dataclass
class ProgressConfig:
    """Display options for :class:`ProgressCallback`.

    Attributes:
        desc: Bar label; the run summary is appended on close
        enable: False keeps the callback registered but draws nothing
        leave: Keep the finished bar on screen
        file: Stream to draw to (default: stderr, or a widget in Jupyter)
    """

    desc: str = "flow"
    enable: bool = True
    leave: bool = True
    file: Optional[Any] = None


class ProgressCallback(FlowCallback):
    """Live progress bar for a flow run.

    One bar per run: its total is the runtime's node estimate, it advances as
    nodes settle and shows the title of the last dispatched end node. Create a
    new instance per run, or let :class:`RuntimeConfiguration` do it.
    """

    def __init__(self, enable: bool = True, desc: str = "flow", file: Optional[Any] = None):
        self.config = ProgressConfig(desc=desc, enable=enable, file=file)
        self._bar: Any = None
        self._failed_nodes: List[int] = []

    def _open(self, total: Optional[int] = None) -> Any:
        if not self.config.enable:
            return None
        if self._bar is None:
            logger.debug(f"Opening progress bar '{self.config.desc}' (total={total})")
            self._bar = tqdm_class(self.config.file)(
                desc=self.config.desc,
                total=total or None,
                leave=self.config.leave,
                file=self.config.file,
                dynamic_ncols=True,
                bar_format=BAR_FORMAT,
            )
        elif total and self._bar.total != total:
            self._bar.total = total
            self._bar.refresh()
        return self._bar

    def _close(self, summary: str) -> None:
        if self._bar is None:
            return
        self._bar.set_description(f"{self.config.desc} {summary}")
        self._bar.refresh()
        self._bar.close()
        self._bar = None

    def on_node_start(self, node_id: int, title: str) -> None:
        bar = self._open()
        if bar is not None:
            bar.set_postfix_str(title or str(node_id))

    def on_progress(self, progress: int, total: int) -> None:
        bar = self._open(total)
        if bar is not None and progress > bar.n:
            bar.update(progress - bar.n)

    def on_node_error(self, node_id: int, title: str, error: str) -> None:
        self._failed_nodes.append(node_id)

    def on_complete(self, results) -> None:
        failed = sum(1 for r in results if not r.succeeded)
        if failed:
            self._close(f"✗ ({failed}/{len(results)} end nodes failed)")
        else:
            self._close(f"✓ ({len(results)} end nodes)")

    def on_error(self, error: str) -> None:
        if self._open() is not None:
            self._close("✗ FAILED")

    @property
    def failed_nodes(self) -> List[int]:
        return list(self._failed_nodes)

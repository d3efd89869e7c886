"""Registry mapping node-type tags to processor functions.

A processor receives a :class:`~nodeflow.node_execution.NodeExecutionContext`
and returns the node's value (or a coroutine producing it). Nodes that carry
their own ``process`` function bypass the registry.

Example:
    >>> registry = ProcessorRegistry()
    >>>
    >>> @registry.processor("Text")
    ... def text(ctx):
    ...     return ctx.node.value
    >>>
    >>> registry.list_node_types()
    ['Text']
"""

import importlib
import logging
from typing import Callable, Dict, List, Optional

from .graph import Processor

logger = logging.getLogger(__name__)


class ProcessorRegistry:
    """Type-erased mapping from node-type tag to processor."""

    def __init__(self):
        self._processors: Dict[str, Processor] = {}
        self._loaded_plugins: List[str] = []

    def register(self, node_type: str, processor: Processor) -> None:
        """Register (or replace) the processor for ``node_type``."""
        if not callable(processor):
            raise TypeError(
                f"Processor for node type '{node_type}' must be callable, "
                f"got {type(processor).__name__}"
            )
        if node_type in self._processors:
            logger.info(f"Replacing processor for node type '{node_type}'")
        self._processors[node_type] = processor

    def processor(self, node_type: str) -> Callable[[Processor], Processor]:
        """Decorator form of :meth:`register`."""

        def decorator(func: Processor) -> Processor:
            self.register(node_type, func)
            return func

        return decorator

    def unregister(self, node_type: str) -> None:
        del self._processors[node_type]
        logger.info(f"Removed processor for node type '{node_type}'")

    def get(self, node_type: str) -> Optional[Processor]:
        return self._processors.get(node_type)

    def list_node_types(self) -> List[str]:
        return sorted(self._processors)

    def load_plugin(self, module_name: str) -> None:
        """Import a node pack and let it register its processors.

        The module must expose ``register(registry)``. Loading the same module
        twice is a no-op.

        Args:
            module_name: Dotted import path of the plugin module

        Raises:
            ImportError: If the module cannot be imported
            AttributeError: If the module has no ``register`` function
        """
        if module_name in self._loaded_plugins:
            return

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            logger.error(f"Failed to import node plugin {module_name}. Error: {e}")
            raise

        register = getattr(module, "register", None)
        if not callable(register):
            raise AttributeError(
                f"Node plugin '{module_name}' does not define a register(registry) function"
            )

        register(self)
        self._loaded_plugins.append(module_name)
        logger.info(f"Loaded node plugin '{module_name}'")

    @property
    def loaded_plugins(self) -> List[str]:
        return list(self._loaded_plugins)

    def __getitem__(self, node_type: str) -> Processor:
        return self._processors[node_type]

    def __contains__(self, node_type: object) -> bool:
        return node_type in self._processors

    def __len__(self) -> int:
        return len(self._processors)


# Shared default registry used by runtimes that are not given one
processor_registry = ProcessorRegistry()

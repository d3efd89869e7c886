"""Runtime configuration management.

This module provides the RuntimeConfiguration class for managing flow
execution settings (registry, callbacks, progress display, logging, plugins)
and loading them from a ``nodeflow.yaml`` file.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import yaml

from .registry import ProcessorRegistry, processor_registry

if TYPE_CHECKING:
    from .callbacks import FlowCallback

DEFAULT_CONFIG_PATH = "nodeflow.yaml"
CONFIG_PATH_ENV = "NODEFLOW_CONFIG"

logger = logging.getLogger(__name__)


@dataclass
class RuntimeConfiguration:
    """Encapsulates flow runtime configuration.

    Attributes:
        registry: Processor registry for nodes without their own process function
        callbacks: Callback objects notified on every run
        progress: Whether to show a progress bar for every run
        log_level: Level for the ``nodeflow`` logger (e.g. "DEBUG"), or None
            to leave logging untouched
        plugins: Node plugin modules to load into the registry
    """

    registry: Optional[ProcessorRegistry] = None
    callbacks: Optional[List["FlowCallback"]] = None
    progress: bool = False
    log_level: Optional[str] = None
    plugins: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeConfiguration":
        """Create a configuration from a YAML/JSON style mapping.

        Raises:
            ValueError: If ``plugins`` is not a list
        """
        plugins = data.get("plugins") or []
        if not isinstance(plugins, list):
            raise ValueError(f"'plugins' must be a list of module names, got {plugins!r}")
        return cls(
            progress=bool(data.get("progress", False)),
            log_level=data.get("log_level"),
            plugins=[str(p) for p in plugins],
        )

    @property
    def effective_registry(self) -> ProcessorRegistry:
        """Get the configured registry (default: shared registry) with plugins loaded."""
        registry = self.registry if self.registry is not None else processor_registry
        return self.load_plugins(registry)

    def load_plugins(self, registry: ProcessorRegistry) -> ProcessorRegistry:
        """Load the configured plugins into ``registry`` and return it."""
        for module_name in self.plugins:
            registry.load_plugin(module_name)
        return registry

    @property
    def effective_callbacks(self) -> List["FlowCallback"]:
        """Get configured callbacks, plus a progress bar if enabled."""
        callbacks = list(self.callbacks or [])
        if self.progress:
            from .telemetry.progress import ProgressCallback

            callbacks.append(ProgressCallback())
        return callbacks

    def configure_logging(self) -> None:
        """Apply ``log_level`` to the package logger."""
        if self.log_level is None:
            return
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {self.log_level}")
        logging.getLogger("nodeflow").setLevel(level)

    def with_registry(self, registry: ProcessorRegistry) -> "RuntimeConfiguration":
        return replace(self, registry=registry)

    def with_callbacks(self, callbacks: List["FlowCallback"]) -> "RuntimeConfiguration":
        return replace(self, callbacks=callbacks)


def load_runtime_config(path: Optional[str] = None) -> RuntimeConfiguration:
    """Load configuration from YAML.

    The path defaults to ``$NODEFLOW_CONFIG`` and then ``nodeflow.yaml`` in the
    working directory. A missing default file yields the default configuration;
    a missing explicit path is an error.

    Args:
        path: Optional path to a YAML file

    Returns:
        RuntimeConfiguration with values from the file

    Raises:
        FileNotFoundError: If an explicitly given path does not exist
    """
    explicit = path is not None or CONFIG_PATH_ENV in os.environ
    config_path = path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)

    if not os.path.exists(config_path):
        if explicit:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return RuntimeConfiguration()

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    logger.debug(f"Loaded runtime config from {config_path}")
    return RuntimeConfiguration.from_dict(data)

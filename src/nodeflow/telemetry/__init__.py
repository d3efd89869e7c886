"""Telemetry for nodeflow runs.

Provides:
- ProgressCallback: Live progress bar for flow execution (tqdm)
"""

from .progress import ProgressCallback, ProgressConfig

__all__ = [
    "ProgressCallback",
    "ProgressConfig",
]

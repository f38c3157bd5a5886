"""
Hotline report watcher

Consumes report change events from the Hotline queue and delivers each
report to the subscribers whose tag filters match it.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.settings import Config, load_config
from .consumer import Disposition, ReportConsumer
from .context import WorkerContext
from .worker import ReportWorker

__all__ = [
    "Config",
    "Disposition",
    "ReportConsumer",
    "ReportWorker",
    "WorkerContext",
    "load_config",
    "__version__",
    "__license__",
]

"""
DiMSum automation - consolidated sample metadata and DiMSum run preparation.
"""

__version__ = "0.1.0"

from .config import AutomationConfig, ConfigError
from .core.models import Experiment, Libraries, Library, Sample
from .core.selection import NameRun, subset
from .metadata.client import Client

__all__ = [
    "Client",
    "AutomationConfig",
    "ConfigError",
    "Library",
    "Experiment",
    "Sample",
    "Libraries",
    "NameRun",
    "subset",
    "__version__",
]

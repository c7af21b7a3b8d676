"""keepwarm - self-scheduling HTTP liveness prober."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("keepwarm")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from keepwarm.app import main
from keepwarm.config import ProberConfig
from keepwarm.monitor import HealthMonitor, HealthStats
from keepwarm.notifier import LoggingNotifier, Notifier, WebhookNotifier
from keepwarm.probe import HttpProber, ProbeResult
from keepwarm.scheduler import PingService, compute_random_interval_ms
from keepwarm.storage import InMemoryStorage, JsonFileStorage, StorageLike, should_auto_restart

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "HealthMonitor",
    "HealthStats",
    "HttpProber",
    "InMemoryStorage",
    "JsonFileStorage",
    "LoggingNotifier",
    "Notifier",
    "PingService",
    "ProbeResult",
    "ProberConfig",
    "StorageLike",
    "WebhookNotifier",
    "compute_random_interval_ms",
    "main",
    "should_auto_restart",
]

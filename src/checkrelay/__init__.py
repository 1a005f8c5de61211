"""
Check Relay

Re-exposes registry health checks as aggregated verify endpoints for
load balancer and uptime probes.
"""

__version__ = "1.0.0"

from .aggregator import CheckAggregator
from .checks import AggregateResult, CheckRecord, HealthSeverity, ResultStatus
from .server import create_app

__all__ = [
    "create_app",
    "CheckAggregator",
    "AggregateResult",
    "CheckRecord",
    "HealthSeverity",
    "ResultStatus",
]

"""iptables and NGINX Plus metric inputs."""

__version__ = "0.1.0"

from .accumulator import Accumulator, Metric, MetricAccumulator
from .config import Config, get_config
from .inputs import IptablesInput, NginxPlusInput

__all__ = [
    "Accumulator",
    "Config",
    "IptablesInput",
    "Metric",
    "MetricAccumulator",
    "NginxPlusInput",
    "get_config",
]

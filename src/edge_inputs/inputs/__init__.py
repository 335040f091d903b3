"""Metric inputs."""

from .iptables import IptablesInput
from .nginx_plus import NginxPlusInput

__all__ = [
    "IptablesInput",
    "NginxPlusInput",
]

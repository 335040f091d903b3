"""Pytest configuration and fixtures."""

import os
import sys

import pytest
import structlog

from edge_inputs.accumulator import MetricAccumulator
from edge_inputs.config import Config

ENV_VARS = [
    "EDGE_LOG_LEVEL",
    "EDGE_OUTPUT_FORMAT",
    "EDGE_IPTABLES_USE_SUDO",
    "EDGE_IPTABLES_USE_LOCK",
    "EDGE_IPTABLES_BINARY",
    "EDGE_IPTABLES_TABLE",
    "EDGE_IPTABLES_CHAINS",
    "EDGE_NGINX_PLUS_URLS",
    "EDGE_NGINX_PLUS_RESPONSE_TIMEOUT",
    "EDGE_NGINX_PLUS_TLS_CA",
    "EDGE_NGINX_PLUS_TLS_CERT",
    "EDGE_NGINX_PLUS_TLS_KEY",
    "EDGE_NGINX_PLUS_INSECURE_SKIP_VERIFY",
]


@pytest.fixture(autouse=True)
def clean_env():
    """Remove edge input environment variables before and after each test."""
    for var in ENV_VARS:
        os.environ.pop(var, None)

    yield

    for var in ENV_VARS:
        os.environ.pop(var, None)


@pytest.fixture(autouse=True)
def structlog_to_stderr():
    """Keep structlog's unconfigured default logger off stdout (metrics go there)."""
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    yield
    structlog.reset_defaults()


@pytest.fixture
def test_config():
    """Test configuration fixture."""
    os.environ["EDGE_LOG_LEVEL"] = "DEBUG"
    os.environ["EDGE_IPTABLES_TABLE"] = "filter"
    os.environ["EDGE_IPTABLES_CHAINS"] = '["INPUT", "FORWARD"]'
    os.environ["EDGE_NGINX_PLUS_URLS"] = '["http://localhost:8080/status"]'
    os.environ["EDGE_NGINX_PLUS_RESPONSE_TIMEOUT"] = "3"

    return Config()


@pytest.fixture
def acc():
    """Fresh in-memory accumulator."""
    return MetricAccumulator()


@pytest.fixture
def find_metric():
    """Helper finding the first metric of a measurement carrying the given tags.

    Usage:
        metric = find_metric(acc, "nginx_plus_zone", zone="site1")
    """

    def _find_metric(acc, measurement, **tags):
        for metric in acc.get_metrics(measurement):
            if all(metric.tags.get(k) == v for k, v in tags.items()):
                return metric
        return None

    return _find_metric


@pytest.fixture
def sample_iptables_output():
    """Listing of a filter/INPUT chain with two commented rules."""
    return (
        "Chain INPUT (policy ACCEPT 58 packets, 5096 bytes)\n"
        "    pkts      bytes target     prot opt in     out     source               destination\n"
        "     100     1024   ACCEPT     tcp  --  *      *       192.168.0.0/24       0.0.0.0/0            tcp dpt:22 /* ssh */\n"
        "      42     2048   DROP       tcp  --  *      *       0.0.0.0/0            0.0.0.0/0            tcp dpt:80 /* block http */\n"
        "       7      512   ACCEPT     udp  --  *      *       0.0.0.0/0            0.0.0.0/0            udp dpt:53\n"
    )


@pytest.fixture
def sample_status_response():
    """NGINX Plus status document, API version 6."""
    return {
        "version": 6,
        "nginx_version": "1.11.10",
        "address": "10.0.0.5",
        "generation": 3,
        "load_timestamp": 1488372052000,
        "timestamp": 1488372069541,
        "pid": 1201,
        "processes": {"respawned": 2},
        "connections": {"accepted": 1234, "dropped": 3, "active": 10, "idle": 5},
        "ssl": {"handshakes": 79, "handshakes_failed": 6, "session_reuses": 12},
        "requests": {"total": 10624, "current": 4},
        "server_zones": {
            "site1": {
                "processing": 2,
                "requests": 736395,
                "responses": {"1xx": 0, "2xx": 727290, "3xx": 4614, "4xx": 934, "5xx": 1535, "total": 734373},
                "discarded": 2020,
                "received": 180157219,
                "sent": 20183175459,
            }
        },
        "upstreams": {
            "trac-backend": {
                "peers": [
                    {
                        "id": 0,
                        "server": "10.0.0.1:8088",
                        "backup": False,
                        "weight": 5,
                        "state": "up",
                        "active": 1,
                        "max_conns": 42,
                        "requests": 667231,
                        "responses": {"1xx": 0, "2xx": 666310, "3xx": 0, "4xx": 915, "5xx": 6, "total": 667231},
                        "sent": 251946292,
                        "received": 19222475454,
                        "fails": 0,
                        "unavail": 0,
                        "health_checks": {"checks": 26214, "fails": 0, "unhealthy": 0, "last_passed": True},
                        "downtime": 0,
                        "downstart": 0,
                        "selected": 1488372069000,
                        "header_time": 20,
                        "response_time": 36,
                    },
                    {
                        "server": "10.0.0.2:8088",
                        "backup": True,
                        "weight": 1,
                        "state": "unhealthy",
                        "active": 0,
                        "requests": 0,
                        "responses": {"1xx": 0, "2xx": 0, "3xx": 0, "4xx": 0, "5xx": 0, "total": 0},
                        "sent": 0,
                        "received": 0,
                        "fails": 0,
                        "unavail": 0,
                        "health_checks": {"checks": 26284, "fails": 26284, "unhealthy": 1},
                        "downtime": 262925617,
                        "downstart": 1488109144000,
                    },
                ],
                "keepalive": 2,
                "zombies": 1,
                "queue": {"size": 3, "max_size": 10, "overflows": 7},
            }
        },
        "caches": {
            "http_cache": {
                "size": 530915328,
                "max_size": 536870912,
                "cold": False,
                "hit": {"responses": 254032, "bytes": 6685627875},
                "stale": {"responses": 0, "bytes": 0},
                "updating": {"responses": 0, "bytes": 0},
                "revalidated": {"responses": 10, "bytes": 2048},
                "miss": {"responses": 1619201, "bytes": 53841943822, "responses_written": 44992, "bytes_written": 1149018208},
                "expired": {"responses": 45859, "bytes": 1656847080, "responses_written": 44992, "bytes_written": 1641825173},
                "bypass": {"responses": 200187, "bytes": 5510647548, "responses_written": 200173, "bytes_written": 44992},
            }
        },
        "stream": {
            "server_zones": {
                "postgresql_loadbalancer": {
                    "processing": 0,
                    "connections": 2,
                    "sessions": {"2xx": 2, "4xx": 0, "5xx": 0, "total": 2},
                    "discarded": 0,
                    "received": 9630,
                    "sent": 5170,
                }
            },
            "upstreams": {
                "postgresql_backends": {
                    "peers": [
                        {
                            "id": 0,
                            "server": "10.0.0.2:15432",
                            "backup": False,
                            "weight": 1,
                            "state": "up",
                            "active": 0,
                            "connections": 1,
                            "connect_time": 4,
                            "first_byte_time": 10,
                            "response_time": 8,
                            "sent": 2585,
                            "received": 4815,
                            "fails": 0,
                            "unavail": 0,
                            "health_checks": {"checks": 40, "fails": 0, "unhealthy": 0, "last_passed": True},
                            "downtime": 0,
                            "downstart": 0,
                            "selected": 1488372053000,
                        }
                    ],
                    "zombies": 0,
                }
            },
        },
    }


@pytest.fixture
def sample_status_v1_response():
    """Minimal status document from an API version 1 server."""
    return {
        "version": 1,
        "nginx_version": "1.5.12",
        "address": "10.0.0.5",
        "timestamp": 1388372069541,
        "connections": {"accepted": 10, "dropped": 0, "active": 1, "idle": 0},
        "requests": {"total": 20, "current": 1},
        "upstreams": {
            "backend": {
                "peers": [
                    {
                        "server": "10.0.0.1:80",
                        "backup": False,
                        "weight": 1,
                        "state": "up",
                        "active": 0,
                        "keepalive": 0,
                        "requests": 5,
                        "responses": {"1xx": 0, "2xx": 5, "3xx": 0, "4xx": 0, "5xx": 0, "total": 5},
                        "sent": 100,
                        "received": 200,
                        "fails": 0,
                        "unavail": 0,
                        "health_checks": {"checks": 0, "fails": 0, "unhealthy": 0},
                        "downtime": 0,
                        "downstart": 0,
                    }
                ],
                "keepalive": 0,
            }
        },
    }

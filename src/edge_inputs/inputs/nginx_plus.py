"""NGINX Plus status input.

Polls the JSON status endpoint of every configured URL and flattens the
nested document into ``nginx_plus_*`` metrics, one per section entry.
"""

import threading
from typing import Any, Optional, Union
from urllib.parse import SplitResult, urlsplit

import structlog
from pydantic import ValidationError

from ..accumulator import Accumulator
from ..client import NginxPlusAPIError, NginxPlusClient, NginxPlusDecodeError
from ..config import Config
from ..status import (
    ResponseStats,
    Status,
    StreamUpstreamPeer,
    UpstreamPeer,
)

logger = structlog.get_logger()

DEFAULT_PORTS = {"http": "80", "https": "443"}


class NginxPlusInput:
    """Input gathering NGINX Plus status metrics from one or more servers."""

    def __init__(
        self,
        urls: Optional[list[str]] = None,
        response_timeout: float = 5,
        tls_ca: Optional[str] = None,
        tls_cert: Optional[str] = None,
        tls_key: Optional[str] = None,
        insecure_skip_verify: bool = False,
    ):
        self.urls = list(urls or [])
        self.response_timeout = response_timeout
        self.tls_ca = tls_ca
        self.tls_cert = tls_cert
        self.tls_key = tls_key
        self.insecure_skip_verify = insecure_skip_verify

        # Created on the first gather and re-used afterwards
        self.client: Optional[NginxPlusClient] = None

    @classmethod
    def from_config(cls, config: Config) -> "NginxPlusInput":
        """Build the input from agent configuration."""
        return cls(
            urls=config.edge_nginx_plus_urls,
            response_timeout=config.edge_nginx_plus_response_timeout,
            tls_ca=config.edge_nginx_plus_tls_ca,
            tls_cert=config.edge_nginx_plus_tls_cert,
            tls_key=config.edge_nginx_plus_tls_key,
            insecure_skip_verify=config.edge_nginx_plus_insecure_skip_verify,
        )

    def create_client(self) -> NginxPlusClient:
        """Create the HTTP client used for every status request."""
        return NginxPlusClient(
            response_timeout=self.response_timeout,
            tls_ca=self.tls_ca,
            tls_cert=self.tls_cert,
            tls_key=self.tls_key,
            insecure_skip_verify=self.insecure_skip_verify,
        )

    def gather(self, acc: Accumulator) -> None:
        """Poll all URLs concurrently and wait for every one of them.

        Raises:
            ValueError: If the HTTP client cannot be created
        """
        if self.client is None:
            self.client = self.create_client()

        workers = []
        for url in self.urls:
            try:
                addr = parse_address(url)
            except ValueError as e:
                acc.add_error(NginxPlusAPIError(f'unable to parse address "{url}": {e}'))
                continue

            worker = threading.Thread(
                target=self._gather_worker,
                args=(addr, acc),
                name=f"nginx-plus-{addr.netloc}",
                daemon=True,
            )
            worker.start()
            workers.append(worker)

        for worker in workers:
            worker.join()

    def _gather_worker(self, addr: SplitResult, acc: Accumulator) -> None:
        try:
            self.gather_url(addr, acc)
        except NginxPlusAPIError as e:
            acc.add_error(e)
        except Exception as e:
            logger.exception("Unexpected error gathering NGINX Plus status", url=addr.geturl())
            acc.add_error(NginxPlusAPIError(f"error gathering {addr.geturl()}: {e}"))

    def gather_url(self, addr: SplitResult, acc: Accumulator) -> None:
        """Fetch one status document and emit its metrics."""
        if self.client is None:
            self.client = self.create_client()

        data = self.client.get_status(addr.geturl())
        gather_status(data, get_tags(addr), acc)

    def close(self) -> None:
        """Release the HTTP client."""
        if self.client is not None:
            self.client.close()
            self.client = None


def parse_address(url: str) -> SplitResult:
    """Parse a status URL, rejecting anything without scheme and host."""
    addr = urlsplit(url)
    if not addr.scheme or not addr.netloc:
        raise ValueError("missing scheme or host")
    return addr


def split_host_port(hostport: str) -> tuple[str, Optional[str]]:
    """Split ``host:port``; the port is ``None`` when not present."""
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            return hostport, None
        host, rest = hostport[1:end], hostport[end + 1:]
        if rest.startswith(":"):
            return host, rest[1:]
        return hostport, None

    host, sep, port = hostport.rpartition(":")
    if not sep or ":" in host:
        return hostport, None
    return host, port


def get_tags(addr: SplitResult) -> dict[str, str]:
    """Build the ``server``/``port`` tags identifying a status URL."""
    hostport = addr.netloc.rpartition("@")[2]
    host, port = split_host_port(hostport)
    if port is None:
        port = DEFAULT_PORTS.get(addr.scheme, "")
    return {"server": host, "port": port}


def gather_status(data: dict[str, Any], tags: dict[str, str], acc: Accumulator) -> None:
    """Decode a status document and emit every section."""
    try:
        status = Status.model_validate(data)
    except ValidationError as e:
        raise NginxPlusDecodeError() from e

    logger.debug(
        "Processing NGINX Plus status",
        server=tags.get("server"),
        version=status.version,
        nginx_version=status.nginx_version,
    )

    gather_processes_metrics(status, tags, acc)
    gather_connections_metrics(status, tags, acc)
    gather_ssl_metrics(status, tags, acc)
    gather_request_metrics(status, tags, acc)
    gather_zone_metrics(status, tags, acc)
    gather_upstream_metrics(status, tags, acc)
    gather_cache_metrics(status, tags, acc)
    gather_stream_metrics(status, tags, acc)


def _response_fields(responses: ResponseStats, prefix: str = "responses") -> dict[str, int]:
    return {
        f"{prefix}_1xx": responses.responses_1xx,
        f"{prefix}_2xx": responses.responses_2xx,
        f"{prefix}_3xx": responses.responses_3xx,
        f"{prefix}_4xx": responses.responses_4xx,
        f"{prefix}_5xx": responses.responses_5xx,
        f"{prefix}_total": responses.total,
    }


def _peer_common_fields(peer: Union[UpstreamPeer, StreamUpstreamPeer]) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "backup": peer.backup,
        "weight": peer.weight,
        "state": peer.state,
        "active": peer.active,
        "sent": peer.sent,
        "received": peer.received,
        "fails": peer.fails,
        "unavail": peer.unavail,
        "healthchecks_checks": peer.health_checks.checks,
        "healthchecks_fails": peer.health_checks.fails,
        "healthchecks_unhealthy": peer.health_checks.unhealthy,
        "downtime": peer.downtime,
        "downstart": peer.downstart,
    }
    if peer.health_checks.last_passed is not None:
        fields["healthchecks_last_passed"] = peer.health_checks.last_passed
    return fields


def gather_processes_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    respawned = 0
    if status.processes is not None and status.processes.respawned is not None:
        respawned = status.processes.respawned

    acc.add_fields("nginx_plus_processes", {"respawned": respawned}, tags)


def gather_connections_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    acc.add_fields(
        "nginx_plus_connections",
        {
            "accepted": status.connections.accepted,
            "dropped": status.connections.dropped,
            "active": status.connections.active,
            "idle": status.connections.idle,
        },
        tags,
    )


def gather_ssl_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    # Only reported by API version 6 and later
    if status.ssl is None:
        return

    acc.add_fields(
        "nginx_plus_ssl",
        {
            "handshakes": status.ssl.handshakes,
            "handshakes_failed": status.ssl.handshakes_failed,
            "session_reuses": status.ssl.session_reuses,
        },
        tags,
    )


def gather_request_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    acc.add_fields(
        "nginx_plus_requests",
        {"total": status.requests.total, "current": status.requests.current},
        tags,
    )


def gather_zone_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    for zone_name, zone in status.server_zones.items():
        zone_tags = {**tags, "zone": zone_name}
        fields: dict[str, Any] = {
            "processing": zone.processing,
            "requests": zone.requests,
            **_response_fields(zone.responses),
            "received": zone.received,
            "sent": zone.sent,
        }
        if zone.discarded is not None:
            fields["discarded"] = zone.discarded

        acc.add_fields("nginx_plus_zone", fields, zone_tags)


def gather_upstream_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    for upstream_name, upstream in status.upstreams.items():
        upstream_tags = {**tags, "upstream": upstream_name}
        upstream_fields: dict[str, Any] = {
            "keepalive": upstream.keepalive,
            "zombies": upstream.zombies,
        }
        if upstream.queue is not None:
            upstream_fields["queue_size"] = upstream.queue.size
            upstream_fields["queue_max_size"] = upstream.queue.max_size
            upstream_fields["queue_overflows"] = upstream.queue.overflows

        acc.add_fields("nginx_plus_upstream", upstream_fields, upstream_tags)

        for peer in upstream.peers:
            peer_fields = _peer_common_fields(peer)
            peer_fields["requests"] = peer.requests
            peer_fields.update(_response_fields(peer.responses))
            peer_fields["selected"] = peer.selected if peer.selected is not None else 0
            if peer.header_time is not None:
                peer_fields["header_time"] = peer.header_time
            if peer.response_time is not None:
                peer_fields["response_time"] = peer.response_time
            if peer.max_conns is not None:
                peer_fields["max_conns"] = peer.max_conns

            peer_tags = {**upstream_tags, "upstream_address": peer.server}
            if peer.id is not None:
                peer_tags["id"] = str(peer.id)

            acc.add_fields("nginx_plus_upstream_peer", peer_fields, peer_tags)


def gather_cache_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    for cache_name, cache in status.caches.items():
        cache_tags = {**tags, "cache": cache_name}
        fields: dict[str, Any] = {
            "size": cache.size,
            "max_size": cache.max_size,
            "cold": cache.cold,
        }
        for name in ("hit", "stale", "updating", "revalidated", "miss", "expired", "bypass"):
            stats = getattr(cache, name)
            fields[f"{name}_responses"] = stats.responses if stats is not None else 0
            fields[f"{name}_bytes"] = stats.bytes if stats is not None else 0
        for name in ("miss", "expired", "bypass"):
            stats = getattr(cache, name)
            fields[f"{name}_responses_written"] = stats.responses_written
            fields[f"{name}_bytes_written"] = stats.bytes_written

        acc.add_fields("nginx_plus_cache", fields, cache_tags)


def gather_stream_metrics(status: Status, tags: dict[str, str], acc: Accumulator) -> None:
    for zone_name, zone in status.stream.server_zones.items():
        zone_tags = {**tags, "zone": zone_name}
        fields: dict[str, Any] = {
            "processing": zone.processing,
            "connections": zone.connections,
            "received": zone.received,
            "sent": zone.sent,
        }
        if zone.sessions is not None:
            fields.update(_response_fields(zone.sessions, prefix="sessions"))
        if zone.discarded is not None:
            fields["discarded"] = zone.discarded

        acc.add_fields("nginx_plus_stream_zone", fields, zone_tags)

    for upstream_name, upstream in status.stream.upstreams.items():
        upstream_tags = {**tags, "upstream": upstream_name}
        acc.add_fields("nginx_plus_stream_upstream", {"zombies": upstream.zombies}, upstream_tags)

        for peer in upstream.peers:
            peer_fields = _peer_common_fields(peer)
            peer_fields["connections"] = peer.connections
            peer_fields["selected"] = peer.selected
            if peer.connect_time is not None:
                peer_fields["connect_time"] = peer.connect_time
            if peer.first_byte_time is not None:
                peer_fields["first_byte_time"] = peer.first_byte_time
            if peer.response_time is not None:
                peer_fields["response_time"] = peer.response_time

            peer_tags = {**upstream_tags, "upstream_address": peer.server, "id": str(peer.id)}
            acc.add_fields("nginx_plus_stream_upstream_peer", peer_fields, peer_tags)

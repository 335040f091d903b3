"""NGINX Plus status document schema.

Fields introduced by later API versions are ``Optional`` and stay ``None``
when an older server omits them; everything else defaults to its zero
value so partial documents still decode. An explicit JSON ``null`` is
treated like a missing key.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class StatusModel(BaseModel):
    """Base for status sections: unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def null_as_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value


class ResponseStats(StatusModel):
    responses_1xx: int = Field(default=0, alias="1xx")
    responses_2xx: int = Field(default=0, alias="2xx")
    responses_3xx: int = Field(default=0, alias="3xx")
    responses_4xx: int = Field(default=0, alias="4xx")
    responses_5xx: int = Field(default=0, alias="5xx")
    total: int = 0


class BasicHitStats(StatusModel):
    responses: int = 0
    bytes: int = 0


class ExtendedHitStats(BasicHitStats):
    responses_written: int = 0
    bytes_written: int = 0


class HealthCheckStats(StatusModel):
    checks: int = 0
    fails: int = 0
    unhealthy: int = 0
    last_passed: Optional[bool] = None


class Processes(StatusModel):
    respawned: Optional[int] = None


class Connections(StatusModel):
    accepted: int = 0
    dropped: int = 0
    active: int = 0
    idle: int = 0


class Ssl(StatusModel):
    handshakes: int = 0
    handshakes_failed: int = 0
    session_reuses: int = 0


class Requests(StatusModel):
    total: int = 0
    current: int = 0


class ServerZone(StatusModel):
    processing: int = 0
    requests: int = 0
    responses: ResponseStats = Field(default_factory=ResponseStats)
    discarded: Optional[int] = None  # version 6
    received: int = 0
    sent: int = 0


class UpstreamPeer(StatusModel):
    id: Optional[int] = None  # version 3
    server: str = ""
    backup: bool = False
    weight: int = 0
    state: str = ""
    active: int = 0
    keepalive: Optional[int] = None  # removed in version 5
    max_conns: Optional[int] = None  # version 3
    requests: int = 0
    responses: ResponseStats = Field(default_factory=ResponseStats)
    sent: int = 0
    received: int = 0
    fails: int = 0
    unavail: int = 0
    health_checks: HealthCheckStats = Field(default_factory=HealthCheckStats)
    downtime: int = 0
    downstart: int = 0
    selected: Optional[int] = None  # version 4
    header_time: Optional[int] = None  # version 5
    response_time: Optional[int] = None  # version 5


class UpstreamQueue(StatusModel):
    size: int = 0
    max_size: int = 0
    overflows: int = 0


class Upstream(StatusModel):
    peers: list[UpstreamPeer] = Field(default_factory=list)
    keepalive: int = 0
    zombies: int = 0  # version 6
    queue: Optional[UpstreamQueue] = None  # version 6


class Cache(StatusModel):
    size: int = 0
    max_size: int = 0
    cold: bool = False
    hit: BasicHitStats = Field(default_factory=BasicHitStats)
    stale: BasicHitStats = Field(default_factory=BasicHitStats)
    updating: BasicHitStats = Field(default_factory=BasicHitStats)
    revalidated: Optional[BasicHitStats] = None  # version 3
    miss: ExtendedHitStats = Field(default_factory=ExtendedHitStats)
    expired: ExtendedHitStats = Field(default_factory=ExtendedHitStats)
    bypass: ExtendedHitStats = Field(default_factory=ExtendedHitStats)


class StreamServerZone(StatusModel):
    processing: int = 0
    connections: int = 0
    sessions: Optional[ResponseStats] = None
    discarded: Optional[int] = None  # version 7
    received: int = 0
    sent: int = 0


class StreamUpstreamPeer(StatusModel):
    id: int = 0
    server: str = ""
    backup: bool = False
    weight: int = 0
    state: str = ""
    active: int = 0
    connections: int = 0
    connect_time: Optional[int] = None
    first_byte_time: Optional[int] = None
    response_time: Optional[int] = None
    sent: int = 0
    received: int = 0
    fails: int = 0
    unavail: int = 0
    health_checks: HealthCheckStats = Field(default_factory=HealthCheckStats)
    downtime: int = 0
    downstart: int = 0
    selected: int = 0


class StreamUpstream(StatusModel):
    peers: list[StreamUpstreamPeer] = Field(default_factory=list)
    zombies: int = 0


class Stream(StatusModel):
    server_zones: dict[str, StreamServerZone] = Field(default_factory=dict)
    upstreams: dict[str, StreamUpstream] = Field(default_factory=dict)


class Status(StatusModel):
    """Top level of the ``/status`` document."""

    version: int = 0
    nginx_version: str = ""
    address: str = ""
    generation: Optional[int] = None  # version 5
    load_timestamp: Optional[int] = None  # version 2
    timestamp: int = 0
    pid: Optional[int] = None  # version 6

    processes: Optional[Processes] = None  # version 5
    connections: Connections = Field(default_factory=Connections)
    ssl: Optional[Ssl] = None  # version 6
    requests: Requests = Field(default_factory=Requests)
    server_zones: dict[str, ServerZone] = Field(default_factory=dict)  # version 2
    upstreams: dict[str, Upstream] = Field(default_factory=dict)
    caches: dict[str, Cache] = Field(default_factory=dict)  # version 2
    stream: Stream = Field(default_factory=Stream)

"""Connection pool statistics model."""

from pydantic import BaseModel, Field


class PoolStats(BaseModel):
    """Snapshot of connection pool counters.

    All fields are zero when the pool has not been initialized.

    ``max_idle_closed`` and ``max_lifetime_closed`` count connections the
    manager closes on release. Idle connections reaped by asyncpg after
    ``conn_max_idle_time`` are not counted; they only show up as a lower
    ``open_connections``.
    """

    max_open_connections: int = Field(default=0, description="Configured connection cap")
    open_connections: int = Field(default=0, description="Established connections")
    in_use: int = Field(default=0, description="Connections currently leased")
    idle: int = Field(default=0, description="Established connections not leased")
    wait_count: int = Field(default=0, description="Borrows that had to wait for a connection")
    wait_duration: float = Field(default=0.0, description="Total seconds spent waiting")
    max_idle_closed: int = Field(
        default=0, description="Closed on release to respect max idle connections"
    )
    max_lifetime_closed: int = Field(
        default=0, description="Closed on release for exceeding max lifetime"
    )
    reinitializations: int = Field(default=0, description="Pool rebuilds after failed health checks")

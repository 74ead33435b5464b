"""HTTP client configuration settings."""

from pydantic import BaseModel, Field, field_validator

from fluenthttp.status_range import parse_status_range


class RedirectConfig(BaseModel):
    """Default redirect policy applied to the global settings level."""

    enabled: bool = Field(
        default=True,
        description="Follow redirect responses automatically",
    )

    allow_secure_to_insecure: bool = Field(
        default=False,
        description="Follow redirects from https to http",
    )

    forward_headers: bool = Field(
        default=False,
        description="Copy request headers to the redirect target",
    )

    forward_authorization_header: bool = Field(
        default=False,
        description="Also copy the Authorization header (requires forward_headers)",
    )

    max_auto_redirects: int = Field(
        default=10,
        description="Maximum consecutive redirects followed for one call",
        ge=0,
    )


class HTTPSettings(BaseModel):
    """HTTP client configuration settings.

    Controls the global call defaults and the connection pools of clients
    created by a client cache.
    """

    timeout: float | None = Field(
        default=100.0,
        description="Per-attempt timeout in seconds (None disables the timeout)",
        ge=0,
    )

    allowed_http_status_range: str | None = Field(
        default=None,
        description="Statuses >= 400 treated as success, e.g. '404,6xx'",
    )

    redirects: RedirectConfig = Field(
        default_factory=RedirectConfig,
        description="Redirect policy",
    )

    http2: bool = Field(
        default=False,
        description="Enable HTTP/2 on pooled connections (requires httpx[http2])",
    )

    verify: bool | str = Field(
        default=True,
        description="TLS verification flag or path to a CA bundle",
    )

    max_connections: int = Field(
        default=100,
        description="Maximum concurrent connections per client",
        ge=1,
    )

    max_keepalive_connections: int = Field(
        default=20,
        description="Maximum idle keep-alive connections per client",
        ge=0,
    )

    @field_validator("allowed_http_status_range")
    @classmethod
    def validate_status_range(cls, v: str | None) -> str | None:
        """Reject malformed ranges at load time."""
        if v is None:
            return v
        return parse_status_range(v).text

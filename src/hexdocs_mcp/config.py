"""Configuration settings for the hexdocs MCP server."""

import re
from urllib.parse import urlparse

from pydantic_settings import BaseSettings

# Cache lifetimes handed to the response layer (seconds)
YEAR_TTL_SECONDS = 31_536_000
HOUR_TTL_SECONDS = 3_600

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+([-.][0-9A-Za-z.-]+)?$")


def is_version_segment(segment: str | None) -> bool:
    """Return True for path segments that look like a release version."""
    return bool(segment and _VERSION_RE.match(segment))


def cache_ttl_for(version: str | None) -> int:
    """Versioned docs never change upstream; unversioned ones track latest."""
    return YEAR_TTL_SECONDS if is_version_segment(version) else HOUR_TTL_SECONDS


def cache_control_for(ttl_seconds: int) -> str:
    """Build a Cache-Control header value for a TTL."""
    value = f"public, max-age={ttl_seconds}"
    if ttl_seconds == YEAR_TTL_SECONDS:
        value += ", immutable"
    return value


class Settings(BaseSettings):
    """hexdocs MCP configuration.

    Environment variables:
    - UPSTREAM_ORIGIN: Documentation site being mirrored
        (default: https://hexdocs.pm)
    - WRAPPER_ORIGIN: Origin the enriched documents link back to
        (default: http://localhost:8787)
    - HTTP_TIMEOUT: Timeout for upstream fetches in seconds (default: 30)
    - TOOL_TIMEOUT: Hard timeout for MCP tool calls, 0 = none (default: 120)
    - USER_AGENT: User-Agent sent upstream
    - LOG_LEVEL: loguru level (default: INFO)
    """

    # Upstream
    upstream_origin: str = "https://hexdocs.pm"
    http_timeout: float = 30.0
    user_agent: str = "hexdocs-mcp/1.0"

    # Wrapper
    wrapper_origin: str = "http://localhost:8787"

    # Tool execution timeout (seconds, 0 = no timeout)
    tool_timeout: int = 120

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def upstream_host(self) -> str:
        """Host (with port, if any) of the upstream documentation site."""
        return urlparse(self.upstream_origin).netloc

    def normalized_wrapper_origin(self) -> str:
        """Wrapper origin without a trailing slash."""
        return self.wrapper_origin.rstrip("/")


settings = Settings()

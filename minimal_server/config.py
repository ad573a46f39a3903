"""Application configuration.

Logging options come from Pydantic Settings. The listen address is looked
up through a pluggable environment getter so callers (and tests) decide
where it comes from. Everything else is a fixed operating parameter.
"""

from functools import lru_cache
from typing import Callable, Optional

from pydantic_settings import BaseSettings

from minimal_server.errors import AddressError

# Function used to look up a key in the process environment (os.getenv fits)
EnvGetter = Callable[[str], Optional[str]]

HTTP_READ_TIMEOUT: float = 10.0  # seconds to receive the request, including the body
HTTP_WRITE_TIMEOUT: float = 10.0  # seconds to produce the response
HTTP_MAX_HEADER_BYTES: int = 1 << 20  # maximum size of the request head
DEFAULT_HOST_PORT = ":4000"
ENV_VAR_ADDRESS = "ADDRESS"
# Kubernetes waits 30s by default before SIGKILL, keep one second for ourselves
GRACE_PERIOD: float = 29.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_json: bool = True  # JSON format for production, False for human-readable

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def resolve_address(getenv: EnvGetter) -> str:
    """Return the host:port to listen on, falling back to the default."""
    hostport = getenv(ENV_VAR_ADDRESS)
    if hostport is None or not hostport.strip():
        return DEFAULT_HOST_PORT
    return hostport


def split_host_port(address: str) -> tuple[str, int]:
    """
    Split a host:port address into its parts.

    An empty host means all interfaces. IPv6 hosts must be bracketed and
    are unwrapped. The port is a decimal number of ASCII digits.

    Raises:
        AddressError: if the address has no port or the port is invalid
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise AddressError(f"address {address!r}: missing port in address")
    if host.startswith("["):
        if not host.endswith("]"):
            raise AddressError(f"address {address!r}: missing ']' in address")
        host = host[1:-1]
        if "[" in host or "]" in host:
            raise AddressError(f"address {address!r}: unexpected bracket in address")
    elif "[" in host or "]" in host:
        raise AddressError(f"address {address!r}: unexpected bracket in address")
    elif ":" in host:
        raise AddressError(f"address {address!r}: too many colons in address")
    # int() would also take "+80", "1_000" and non-ASCII digits
    if not (port.isascii() and port.isdigit()):
        raise AddressError(f"address {address!r}: invalid port {port!r}")
    port_number = int(port)
    if port_number > 65535:
        raise AddressError(f"address {address!r}: port out of range")
    return host, port_number

"""
Options model and TOML loading for apiserver-preflight.
"""

from apiserver_preflight.config.options import (
    NetworkRange,
    PortRange,
    ServerRunOptions,
    TokenIssuer,
    complete,
    parse_cidr,
    parse_port_range,
)
from apiserver_preflight.config.loader import (
    PreflightConfig,
    dump_default_config,
    load_config,
    parse_config,
)

__all__ = [
    "NetworkRange",
    "PortRange",
    "ServerRunOptions",
    "TokenIssuer",
    "complete",
    "parse_cidr",
    "parse_port_range",
    "PreflightConfig",
    "dump_default_config",
    "load_config",
    "parse_config",
]

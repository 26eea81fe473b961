"""
Load API server options from TOML.

Keys use the flag names with underscores, e.g. --apiserver-count becomes
apiserver_count. Subsystem options live in their own tables and feature
gates in [feature_gates].
"""

import logging
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any

import tomli
import tomli_w

from apiserver_preflight.config.options import (
    DEFAULT_SERVICE_CLUSTER_IP_RANGE,
    DEFAULT_SERVICE_NODE_PORT_RANGE,
    AdmissionOptions,
    APIEnablementOptions,
    AuditOptions,
    AuthenticationOptions,
    AuthorizationOptions,
    EtcdOptions,
    InsecureServingOptions,
    SecureServingOptions,
    ServerRunOptions,
    ServiceAccountAuthenticationOptions,
    parse_cidr,
    parse_port_range,
)
from apiserver_preflight.errors import ConfigLoadError
from apiserver_preflight.features import KNOWN_FEATURES

logger = logging.getLogger(__name__)


# Subsystem tables and the dataclass each one populates
SECTIONS = {
    "etcd": EtcdOptions,
    "secure_serving": SecureServingOptions,
    "insecure_serving": InsecureServingOptions,
    "authorization": AuthorizationOptions,
    "audit": AuditOptions,
    "admission": AdmissionOptions,
    "api_enablement": APIEnablementOptions,
}

TOP_LEVEL_KEYS = {
    "apiserver_count",
    "proxy_cidr_whitelist",
    "service_cluster_ip_range",
    "service_node_port_range",
    "kubernetes_service_node_port",
    "service_account_signing_key_file",
}


@dataclass
class PreflightConfig:
    """Options snapshot plus the feature gate states declared alongside it."""
    options: ServerRunOptions
    feature_gates: dict[str, bool] = field(default_factory=dict)
    path: Path | None = None


def load_config(config_path: Path) -> PreflightConfig:
    """
    Load options and feature gates from a TOML file.

    Args:
        config_path: Path to the options file

    Returns:
        PreflightConfig with raw (not yet completed) options

    Raises:
        ConfigLoadError: if the file is missing, not TOML, or has unknown keys
            or wrongly typed values
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigLoadError(f"Options file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise ConfigLoadError(f"Invalid TOML in {config_path}: {e}") from e

    logger.debug("Loaded %d top-level keys from %s", len(data), config_path)

    config = parse_config(data)
    config.path = config_path
    return config


def parse_config(data: dict[str, Any]) -> PreflightConfig:
    """Build a PreflightConfig from already-parsed TOML data."""
    data = dict(data)
    gates = _parse_feature_gates(data.pop("feature_gates", {}))

    kwargs: dict[str, Any] = {}
    for name, cls in SECTIONS.items():
        if name in data:
            kwargs[name] = _build_section(name, cls, data.pop(name))
    if "authentication" in data:
        kwargs["authentication"] = _build_authentication(data.pop("authentication"))

    unknown = set(data) - TOP_LEVEL_KEYS
    if unknown:
        raise ConfigLoadError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    if "apiserver_count" in data:
        kwargs["apiserver_count"] = _expect(data, "apiserver_count", int)
    if "kubernetes_service_node_port" in data:
        kwargs["kubernetes_service_node_port"] = _expect(data, "kubernetes_service_node_port", int)
    if "service_account_signing_key_file" in data:
        kwargs["service_account_signing_key_file"] = _expect(data, "service_account_signing_key_file", str)
    if "proxy_cidr_whitelist" in data:
        entries = _expect_str_list(data, "proxy_cidr_whitelist")
        kwargs["proxy_cidr_whitelist"] = [parse_cidr(entry) for entry in entries]
    if "service_cluster_ip_range" in data:
        raw = _expect(data, "service_cluster_ip_range", str)
        kwargs["service_cluster_ip_range"] = parse_cidr(raw) if raw.strip() else None
    if "service_node_port_range" in data:
        kwargs["service_node_port_range"] = parse_port_range(
            _expect(data, "service_node_port_range", str)
        )

    return PreflightConfig(options=ServerRunOptions(**kwargs), feature_gates=gates)


def _expect(table: dict[str, Any], key: str, kind: type, prefix: str = "") -> Any:
    """Return table[key], checking its TOML type."""
    value = table[key]
    # bool is a subclass of int; a flag count of `true` is a typo, not 1
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigLoadError(
            f"Option {prefix}{key} must be of type {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _expect_str_list(table: dict[str, Any], key: str, prefix: str = "") -> list[str]:
    """Return table[key], checking it is a list of strings."""
    value = _expect(table, key, list, prefix)
    if not all(isinstance(item, str) for item in value):
        raise ConfigLoadError(f"Option {prefix}{key} must be a list of str")
    return value


def _build_section(name: str, cls: type, table: Any) -> Any:
    """Populate a subsystem dataclass from a TOML table."""
    if not isinstance(table, dict):
        raise ConfigLoadError(f"[{name}] must be a table")

    known = {f.name: f for f in fields(cls)}
    unknown = set(table) - set(known)
    if unknown:
        raise ConfigLoadError(f"Unknown option(s) in [{name}]: {', '.join(sorted(unknown))}")

    defaults = cls()
    kwargs = {}
    for key, value in table.items():
        expected = type(getattr(defaults, key))
        if expected is list:
            kwargs[key] = _expect_str_list(table, key, prefix=f"{name}.")
        elif expected is dict:
            _expect(table, key, dict, prefix=f"{name}.")
            kwargs[key] = {str(k): str(v).lower() if isinstance(v, bool) else str(v) for k, v in value.items()}
        else:
            kwargs[key] = _expect(table, key, expected, prefix=f"{name}.")
    return cls(**kwargs)


def _build_authentication(table: Any) -> AuthenticationOptions:
    if not isinstance(table, dict):
        raise ConfigLoadError("[authentication] must be a table")
    table = dict(table)
    accounts = ServiceAccountAuthenticationOptions()
    if "service_accounts" in table:
        accounts = _build_section(
            "authentication.service_accounts",
            ServiceAccountAuthenticationOptions,
            table.pop("service_accounts"),
        )
    authentication = _build_section("authentication", AuthenticationOptions, table)
    authentication.service_accounts = accounts
    return authentication


def _parse_feature_gates(table: Any) -> dict[str, bool]:
    if not isinstance(table, dict):
        raise ConfigLoadError("[feature_gates] must be a table")
    gates = {}
    for name, value in table.items():
        if name not in KNOWN_FEATURES:
            raise ConfigLoadError(f"Unknown feature gate in [feature_gates]: {name}")
        if not isinstance(value, bool):
            raise ConfigLoadError(f"Feature gate {name} must be true or false")
        gates[name] = value
    return gates


def default_config_data() -> dict[str, Any]:
    """Default options as TOML-ready data."""
    options = ServerRunOptions()
    data: dict[str, Any] = {
        "apiserver_count": options.apiserver_count,
        "proxy_cidr_whitelist": [],
        "service_cluster_ip_range": DEFAULT_SERVICE_CLUSTER_IP_RANGE,
        "service_node_port_range": DEFAULT_SERVICE_NODE_PORT_RANGE,
        "kubernetes_service_node_port": options.kubernetes_service_node_port,
        "service_account_signing_key_file": options.service_account_signing_key_file,
        "feature_gates": {name: spec.default for name, spec in KNOWN_FEATURES.items()},
    }
    for name in [*SECTIONS, "authentication"]:
        section = getattr(options, name)
        if is_dataclass(section):
            data[name] = asdict(section)
    return data


def dump_default_config(output_path: Path) -> None:
    """Write a default options file."""
    with open(output_path, "wb") as f:
        tomli_w.dump(default_config_data(), f)

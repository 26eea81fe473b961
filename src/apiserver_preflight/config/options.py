"""
API server run options.

A ServerRunOptions value is the snapshot the preflight checks inspect. It is
normally produced by config.loader from a TOML file and then passed through
complete() to fill in the derived fields.
"""

import ipaddress
from dataclasses import dataclass, field, replace

from apiserver_preflight.errors import ConfigLoadError


IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

DEFAULT_SERVICE_CLUSTER_IP_RANGE = "10.0.0.0/24"
DEFAULT_SERVICE_NODE_PORT_RANGE = "30000-32767"


@dataclass(frozen=True)
class NetworkRange:
    """
    A CIDR as written by the operator.

    network is None when raw did not parse; validators report that instead
    of the loader rejecting the whole file.
    """
    raw: str
    network: IPNetwork | None = None

    @property
    def host_bits(self) -> int:
        """Width of the host portion, 0 when there is no network."""
        if self.network is None:
            return 0
        return self.network.max_prefixlen - self.network.prefixlen

    def __str__(self) -> str:
        return str(self.network) if self.network is not None else self.raw


def parse_cidr(text: str) -> NetworkRange:
    """Parse a CIDR string, keeping unparseable input as a NetworkRange without a network."""
    text = text.strip()
    try:
        network = ipaddress.ip_network(text, strict=False) if "/" in text else None
    except ValueError:
        network = None
    return NetworkRange(raw=text, network=network)


@dataclass(frozen=True)
class PortRange:
    """Inclusive port range starting at base and spanning size ports."""
    base: int
    size: int

    @property
    def last(self) -> int:
        return self.base + self.size - 1

    def contains(self, port: int) -> bool:
        return self.base <= port < self.base + self.size

    def __str__(self) -> str:
        if self.size == 0:
            return "<empty>"
        return f"{self.base}-{self.last}"


def parse_port_range(text: str) -> PortRange:
    """
    Parse "30000-32767" or a single port "30000".

    Raises:
        ConfigLoadError: if the text is not a valid range
    """
    text = text.strip()
    if not text:
        return PortRange(base=0, size=0)

    low, sep, high = text.partition("-")
    try:
        base = int(low)
        last = int(high) if sep else base
    except ValueError:
        raise ConfigLoadError(f"unable to parse port range: {text!r}") from None

    if base < 0 or last > 65535 or last < base:
        raise ConfigLoadError(f"invalid port range: {text!r}")

    return PortRange(base=base, size=last - base + 1)


@dataclass
class EtcdOptions:
    servers: list[str] = field(default_factory=lambda: ["http://127.0.0.1:2379"])
    storage_backend: str = "etcd3"
    prefix: str = "/registry"
    compaction_interval_seconds: int = 300
    count_metric_poll_period_seconds: int = 60


@dataclass
class SecureServingOptions:
    bind_address: str = "0.0.0.0"
    bind_port: int = 6443
    cert_dir: str = "/var/run/kubernetes"
    tls_cert_file: str = ""
    tls_private_key_file: str = ""


@dataclass
class InsecureServingOptions:
    bind_address: str = "127.0.0.1"
    bind_port: int = 0


@dataclass
class ServiceAccountAuthenticationOptions:
    key_files: list[str] = field(default_factory=list)
    lookup: bool = True
    issuer: str = ""
    key_service_url: str = ""
    max_expiration_seconds: int = 0


@dataclass
class AuthenticationOptions:
    api_audiences: list[str] = field(default_factory=list)
    service_accounts: ServiceAccountAuthenticationOptions = field(
        default_factory=ServiceAccountAuthenticationOptions
    )
    anonymous: bool = True
    token_auth_file: str = ""


@dataclass
class AuthorizationOptions:
    modes: list[str] = field(default_factory=lambda: ["AlwaysAllow"])
    policy_file: str = ""
    webhook_config_file: str = ""
    webhook_cache_authorized_ttl_seconds: int = 300
    webhook_cache_unauthorized_ttl_seconds: int = 30


@dataclass
class AuditOptions:
    policy_file: str = ""
    log_path: str = ""
    log_format: str = "json"
    log_max_age: int = 0
    log_max_backups: int = 0
    log_max_size: int = 0
    webhook_config_file: str = ""


@dataclass
class AdmissionOptions:
    enable_plugins: list[str] = field(default_factory=list)
    disable_plugins: list[str] = field(default_factory=list)
    config_file: str = ""


@dataclass
class APIEnablementOptions:
    runtime_config: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenIssuer:
    """Service account token issuer built from the signing key and issuer flags."""
    issuer: str
    signing_key_file: str


@dataclass
class ServerRunOptions:
    """All options needed to start the API server."""
    apiserver_count: int = 1
    proxy_cidr_whitelist: list[NetworkRange] = field(default_factory=list)
    service_cluster_ip_range: NetworkRange | None = field(
        default_factory=lambda: parse_cidr(DEFAULT_SERVICE_CLUSTER_IP_RANGE)
    )
    service_node_port_range: PortRange = field(
        default_factory=lambda: parse_port_range(DEFAULT_SERVICE_NODE_PORT_RANGE)
    )
    kubernetes_service_node_port: int = 0
    service_account_signing_key_file: str = ""

    etcd: EtcdOptions = field(default_factory=EtcdOptions)
    secure_serving: SecureServingOptions = field(default_factory=SecureServingOptions)
    insecure_serving: InsecureServingOptions = field(default_factory=InsecureServingOptions)
    authentication: AuthenticationOptions = field(default_factory=AuthenticationOptions)
    authorization: AuthorizationOptions = field(default_factory=AuthorizationOptions)
    audit: AuditOptions = field(default_factory=AuditOptions)
    admission: AdmissionOptions = field(default_factory=AdmissionOptions)
    api_enablement: APIEnablementOptions = field(default_factory=APIEnablementOptions)

    # Derived by complete(); never read from the options file.
    service_account_issuer: TokenIssuer | None = None


def complete(options: ServerRunOptions) -> ServerRunOptions:
    """
    Fill in derived fields and return a new ServerRunOptions.

    - service_account_issuer is built when both the signing key file and the
      issuer are set.
    - api_audiences defaults to [issuer] when empty and the issuer is set.

    The input snapshot is left untouched.
    """
    accounts = options.authentication.service_accounts
    audiences = list(options.authentication.api_audiences)
    if not audiences and accounts.issuer:
        audiences = [accounts.issuer]

    issuer = None
    if options.service_account_signing_key_file and accounts.issuer:
        issuer = TokenIssuer(
            issuer=accounts.issuer,
            signing_key_file=options.service_account_signing_key_file,
        )

    authentication = replace(
        options.authentication,
        api_audiences=audiences,
        service_accounts=replace(accounts),
    )
    return replace(options, authentication=authentication, service_account_issuer=issuer)

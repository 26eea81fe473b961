"""
Field-level checks on the API server run options.

Each check looks at one option (or one option plus the range it must fall
in) and returns every problem it finds. Checks are independent: none of them
reads another check's output.
"""

from apiserver_preflight.config.options import ServerRunOptions
from apiserver_preflight.validator.types import ErrorKind, ValidationError


# Larger ranges make the service IP allocator bitmap too big to keep in memory
MAX_SERVICE_CLUSTER_IP_HOST_BITS = 20

MAX_PORT = 65535


def check_apiserver_count(options: ServerRunOptions) -> list[ValidationError]:
    """--apiserver-count must be positive."""
    errors = []
    if options.apiserver_count <= 0:
        errors.append(ValidationError(
            check="apiserver-count",
            kind=ErrorKind.OUT_OF_RANGE,
            message=(
                "--apiserver-count should be a positive number, "
                f"but value '{options.apiserver_count}' provided"
            ),
        ))
    return errors


def check_proxy_cidr_whitelist(options: ServerRunOptions) -> list[ValidationError]:
    """
    Every --proxy-cidr-whitelist entry must be a valid CIDR.

    An empty whitelist is valid and leaves the proxy unrestricted.
    """
    errors = []
    for cidr in options.proxy_cidr_whitelist:
        if cidr.network is None:
            errors.append(ValidationError(
                check="proxy-cidr-whitelist",
                kind=ErrorKind.MALFORMED,
                message=f"invalid --proxy-cidr-whitelist specified: {cidr.raw!r}",
                fix="Use CIDR notation, e.g. 10.0.0.0/8",
            ))
    return errors


def check_cluster_ip_range(options: ServerRunOptions) -> list[ValidationError]:
    """
    --service-cluster-ip-range must be present and at most 2^20 addresses.

    Both rules are evaluated. An absent or unparseable range measures 0 host
    bits, so the size rule cannot fire for it.
    """
    errors = []
    ip_range = options.service_cluster_ip_range

    if ip_range is None:
        errors.append(ValidationError(
            check="service-cluster-ip-range",
            kind=ErrorKind.MISSING,
            message="no --service-cluster-ip-range specified",
        ))
    elif ip_range.network is None:
        errors.append(ValidationError(
            check="service-cluster-ip-range",
            kind=ErrorKind.MALFORMED,
            message=f"invalid --service-cluster-ip-range specified: {ip_range.raw!r}",
            fix="Use CIDR notation, e.g. 10.96.0.0/12",
        ))

    host_bits = ip_range.host_bits if ip_range is not None else 0
    if host_bits > MAX_SERVICE_CLUSTER_IP_HOST_BITS:
        errors.append(ValidationError(
            check="service-cluster-ip-range",
            kind=ErrorKind.OUT_OF_RANGE,
            message=f"specified --service-cluster-ip-range {ip_range} is too large",
            fix=f"Use a prefix with at most {MAX_SERVICE_CLUSTER_IP_HOST_BITS} host bits",
        ))

    return errors


def check_service_node_port(options: ServerRunOptions) -> list[ValidationError]:
    """
    --kubernetes-service-node-port must be a valid port inside --service-node-port-range.

    0 means the kubernetes service is of type ClusterIP and skips both rules.
    Range membership is only checked for a port that is itself valid, so an
    impossible port is reported once.
    """
    errors = []
    port = options.kubernetes_service_node_port
    valid_port = 0 <= port <= MAX_PORT

    if not valid_port:
        errors.append(ValidationError(
            check="kubernetes-service-node-port",
            kind=ErrorKind.OUT_OF_RANGE,
            message=(
                f"--kubernetes-service-node-port {port} must be between 0 and {MAX_PORT}, inclusive. "
                "If 0, the Kubernetes master service will be of type ClusterIP"
            ),
        ))

    if valid_port and port > 0 and not options.service_node_port_range.contains(port):
        errors.append(ValidationError(
            check="kubernetes-service-node-port",
            kind=ErrorKind.OUT_OF_RANGE,
            message=(
                f"kubernetes service port range {options.service_node_port_range} "
                f"doesn't contain {port}"
            ),
        ))

    return errors

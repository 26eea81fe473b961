"""
Preflight validation for API server run options.

This module checks a completed options snapshot before the server starts:
- Field values (--apiserver-count, CIDRs, node port)
- Subsystem options (etcd, serving, authn/authz, audit, admission, API enablement)
- Service account token feature gates and the flags they require
"""

from apiserver_preflight.validator.types import ErrorKind, ValidationError
from apiserver_preflight.validator.core import (
    validate_options,
    ValidationResults,
    format_results,
)
from apiserver_preflight.validator.fields import (
    check_apiserver_count,
    check_proxy_cidr_whitelist,
    check_cluster_ip_range,
    check_service_node_port,
)
from apiserver_preflight.validator.tokens import (
    validate_token_request,
    validate_external_key_server,
)
from apiserver_preflight.validator.subsystems import DEFAULT_API_REGISTRY

__all__ = [
    # Core validation
    "validate_options",
    "ValidationError",
    "ValidationResults",
    "ErrorKind",
    "format_results",
    # Field checks
    "check_apiserver_count",
    "check_proxy_cidr_whitelist",
    "check_cluster_ip_range",
    "check_service_node_port",
    # Token feature checks
    "validate_token_request",
    "validate_external_key_server",
    # Subsystems
    "DEFAULT_API_REGISTRY",
]

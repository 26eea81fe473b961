"""
Core validation logic for API server run options.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from rich.console import Console
from rich.markup import escape

from apiserver_preflight.config.options import (
    AdmissionOptions,
    APIEnablementOptions,
    AuditOptions,
    AuthenticationOptions,
    AuthorizationOptions,
    EtcdOptions,
    InsecureServingOptions,
    PortRange,
    SecureServingOptions,
    ServerRunOptions,
    ServiceAccountAuthenticationOptions,
)
from apiserver_preflight.errors import InvalidInvocationError
from apiserver_preflight.features import EXTERNAL_KEY_SERVICE, FeatureGates
from apiserver_preflight.validator.fields import (
    check_apiserver_count,
    check_cluster_ip_range,
    check_proxy_cidr_whitelist,
    check_service_node_port,
)
from apiserver_preflight.validator.subsystems import (
    DEFAULT_API_REGISTRY,
    validate_admission,
    validate_api_enablement,
    validate_audit,
    validate_authentication,
    validate_authorization,
    validate_etcd,
    validate_insecure_serving,
    validate_secure_serving,
)
from apiserver_preflight.validator.tokens import (
    validate_external_key_server,
    validate_token_request,
)
from apiserver_preflight.validator.types import ErrorKind, ValidationError

logger = logging.getLogger(__name__)


# Nested options objects every validator dereferences without checking
SUBSYSTEM_TYPES = {
    "service_node_port_range": PortRange,
    "etcd": EtcdOptions,
    "secure_serving": SecureServingOptions,
    "insecure_serving": InsecureServingOptions,
    "authentication": AuthenticationOptions,
    "authorization": AuthorizationOptions,
    "audit": AuditOptions,
    "admission": AdmissionOptions,
    "api_enablement": APIEnablementOptions,
}


@dataclass
class ValidationResults:
    """
    Ordered collection of validation errors.

    Insertion order is the order the checks ran. Nothing is deduplicated:
    two rules reporting related problems both show up.
    """
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def add(self, error: ValidationError) -> None:
        self.errors.append(error)

    def extend(self, errors: Iterable[ValidationError]) -> None:
        self.errors.extend(errors)

    def messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def kinds(self) -> list[ErrorKind]:
        return [e.kind for e in self.errors]

    def __iter__(self) -> Iterator[ValidationError]:
        return iter(self.errors)

    def __len__(self) -> int:
        return len(self.errors)


def validate_options(
    options: ServerRunOptions,
    gates: FeatureGates,
    api_registry: frozenset[str] = DEFAULT_API_REGISTRY,
) -> ValidationResults:
    """
    Validate API server run options.

    Runs every check, in this order:
    1. --apiserver-count
    2. etcd
    3. --proxy-cidr-whitelist
    4. --service-cluster-ip-range
    5. --kubernetes-service-node-port
    6. secure serving, authentication, authorization, audit, admission,
       insecure serving, API enablement
    7. token issuance: the external key service checks when the
       ExternalKeyService gate is on, otherwise the local signing key checks

    An invalid option never stops later checks.

    Args:
        options: Completed run options; not modified
        gates: Feature gate states; not modified
        api_registry: Group versions the API server serves

    Returns:
        ValidationResults; empty means the options are safe to start with

    Raises:
        InvalidInvocationError: if options, any nested subsystem options, or
            gates are missing or of the wrong type
    """
    if not isinstance(options, ServerRunOptions):
        raise InvalidInvocationError(
            f"options must be ServerRunOptions, got {type(options).__name__}"
        )
    if not isinstance(gates, FeatureGates):
        raise InvalidInvocationError(
            f"gates must be FeatureGates, got {type(gates).__name__}"
        )

    _check_option_types(options)

    results = ValidationResults()

    results.extend(check_apiserver_count(options))
    results.extend(validate_etcd(options.etcd))
    results.extend(check_proxy_cidr_whitelist(options))
    results.extend(check_cluster_ip_range(options))
    results.extend(check_service_node_port(options))
    results.extend(validate_secure_serving(options.secure_serving))
    results.extend(validate_authentication(options.authentication))
    results.extend(validate_authorization(options.authorization))
    results.extend(validate_audit(options.audit))
    results.extend(validate_admission(options.admission))
    results.extend(validate_insecure_serving(options.insecure_serving))
    results.extend(validate_api_enablement(options.api_enablement, api_registry))

    # Both token validators look at the issuer flag; run only the one for the active mode
    if gates.enabled(EXTERNAL_KEY_SERVICE):
        logger.debug("Validating token issuance via external key service")
        results.extend(validate_external_key_server(options, gates))
    else:
        logger.debug("Validating token issuance via local signing key")
        results.extend(validate_token_request(options, gates))

    logger.debug("Validation finished with %d error(s)", len(results))
    return results


def _check_option_types(options: ServerRunOptions) -> None:
    for name, cls in SUBSYSTEM_TYPES.items():
        value = getattr(options, name)
        if not isinstance(value, cls):
            raise InvalidInvocationError(
                f"options.{name} must be {cls.__name__}, got {type(value).__name__}"
            )
    accounts = options.authentication.service_accounts
    if not isinstance(accounts, ServiceAccountAuthenticationOptions):
        raise InvalidInvocationError(
            "options.authentication.service_accounts must be "
            f"ServiceAccountAuthenticationOptions, got {type(accounts).__name__}"
        )


KIND_LABELS = {
    ErrorKind.OUT_OF_RANGE: "out of range",
    ErrorKind.MALFORMED: "malformed",
    ErrorKind.MISSING: "missing",
    ErrorKind.FEATURE_GATE_REQUIRED: "feature gate",
    ErrorKind.FEATURE_DEPENDENCY_UNMET: "feature dependency",
    ErrorKind.INCONSISTENT_SETTINGS: "inconsistent",
}


def format_results(results: ValidationResults, console: Console) -> None:
    """Format validation results for display."""
    for e in results:
        console.print(f"[red]✗[/red] {escape(e.message)} [dim]({KIND_LABELS[e.kind]})[/dim]", highlight=False)

        if e.fix:
            console.print(f"  [cyan]→ {escape(e.fix)}[/cyan]", highlight=False)

    if results.has_errors:
        console.print(f"\n[red]{len(results)} error(s)[/red]")
    else:
        console.print("\n[green]All checks passed[/green]")

"""
Subsystem option checks.

Each subsystem (etcd, serving, authentication, authorization, audit,
admission, API enablement) owns its own rules. The orchestrator treats
these functions as black boxes and only concatenates what they return.
"""

from apiserver_preflight.config.options import (
    AdmissionOptions,
    APIEnablementOptions,
    AuditOptions,
    AuthenticationOptions,
    AuthorizationOptions,
    EtcdOptions,
    InsecureServingOptions,
    SecureServingOptions,
)
from apiserver_preflight.validator.types import ErrorKind, ValidationError


STORAGE_BACKENDS = ("etcd3",)

AUTHORIZATION_MODES = ("AlwaysAllow", "AlwaysDeny", "ABAC", "Webhook", "RBAC", "Node")

AUDIT_LOG_FORMATS = ("legacy", "json")

ADMISSION_PLUGINS = frozenset({
    "AlwaysPullImages",
    "DefaultStorageClass",
    "DefaultTolerationSeconds",
    "LimitRanger",
    "MutatingAdmissionWebhook",
    "NamespaceLifecycle",
    "NodeRestriction",
    "PersistentVolumeClaimResize",
    "PodSecurityPolicy",
    "Priority",
    "ResourceQuota",
    "ServiceAccount",
    "StorageObjectInUseProtection",
    "ValidatingAdmissionWebhook",
})

# Group versions served by the built-in, extension and aggregator registries
DEFAULT_API_REGISTRY = frozenset({
    "v1",
    "admissionregistration.k8s.io/v1beta1",
    "apiextensions.k8s.io/v1beta1",
    "apiregistration.k8s.io/v1",
    "apps/v1",
    "authentication.k8s.io/v1",
    "authorization.k8s.io/v1",
    "autoscaling/v1",
    "autoscaling/v2beta1",
    "batch/v1",
    "batch/v1beta1",
    "certificates.k8s.io/v1beta1",
    "coordination.k8s.io/v1beta1",
    "events.k8s.io/v1beta1",
    "extensions/v1beta1",
    "networking.k8s.io/v1",
    "policy/v1beta1",
    "rbac.authorization.k8s.io/v1",
    "scheduling.k8s.io/v1beta1",
    "settings.k8s.io/v1alpha1",
    "storage.k8s.io/v1",
})

# runtime-config keys that switch whole sets of APIs rather than one group version
RUNTIME_CONFIG_ALIASES = ("api/all", "api/legacy")


def _port_error(check: str, flag: str, port: int) -> list[ValidationError]:
    if 0 <= port <= 65535:
        return []
    return [ValidationError(
        check=check,
        kind=ErrorKind.OUT_OF_RANGE,
        message=f"{flag} {port} must be between 0 and 65535, inclusive. 0 for turning off the port",
    )]


def validate_etcd(options: EtcdOptions) -> list[ValidationError]:
    errors = []
    if not options.servers:
        errors.append(ValidationError(
            check="etcd-servers",
            kind=ErrorKind.MISSING,
            message="--etcd-servers must be specified",
        ))
    if options.storage_backend not in STORAGE_BACKENDS:
        errors.append(ValidationError(
            check="storage-backend",
            kind=ErrorKind.MALFORMED,
            message=(
                f"--storage-backend invalid, allowed values: {', '.join(STORAGE_BACKENDS)}. "
                f"got {options.storage_backend!r}"
            ),
        ))
    if options.compaction_interval_seconds < 0:
        errors.append(ValidationError(
            check="etcd-compaction-interval",
            kind=ErrorKind.OUT_OF_RANGE,
            message="--etcd-compaction-interval must not be negative",
        ))
    if options.count_metric_poll_period_seconds < 0:
        errors.append(ValidationError(
            check="etcd-count-metric-poll-period",
            kind=ErrorKind.OUT_OF_RANGE,
            message="--etcd-count-metric-poll-period must not be negative",
        ))
    return errors


def validate_secure_serving(options: SecureServingOptions) -> list[ValidationError]:
    errors = _port_error("secure-port", "--secure-port", options.bind_port)
    if bool(options.tls_cert_file) != bool(options.tls_private_key_file):
        errors.append(ValidationError(
            check="tls-cert-pair",
            kind=ErrorKind.INCONSISTENT_SETTINGS,
            message="--tls-cert-file and --tls-private-key-file must be specified together",
        ))
    return errors


def validate_insecure_serving(options: InsecureServingOptions) -> list[ValidationError]:
    return _port_error("insecure-port", "--insecure-port", options.bind_port)


def validate_authentication(options: AuthenticationOptions) -> list[ValidationError]:
    errors = []
    if any(not audience.strip() for audience in options.api_audiences):
        errors.append(ValidationError(
            check="api-audiences",
            kind=ErrorKind.MALFORMED,
            message="--api-audiences must not contain empty values",
        ))
    if options.service_accounts.max_expiration_seconds < 0:
        errors.append(ValidationError(
            check="service-account-max-token-expiration",
            kind=ErrorKind.OUT_OF_RANGE,
            message="--service-account-max-token-expiration must not be negative",
        ))
    return errors


def validate_authorization(options: AuthorizationOptions) -> list[ValidationError]:
    """Mode list plus the files each mode needs."""
    errors = []
    if not options.modes:
        errors.append(ValidationError(
            check="authorization-mode",
            kind=ErrorKind.MISSING,
            message="at least one authorization-mode must be passed",
        ))

    seen = set()
    for mode in options.modes:
        if mode not in AUTHORIZATION_MODES:
            errors.append(ValidationError(
                check="authorization-mode",
                kind=ErrorKind.MALFORMED,
                message=f"authorization-mode {mode!r} is not a valid mode",
                fix=f"Valid modes: {', '.join(AUTHORIZATION_MODES)}",
            ))
        if mode in seen:
            errors.append(ValidationError(
                check="authorization-mode",
                kind=ErrorKind.INCONSISTENT_SETTINGS,
                message=f"authorization-mode {mode!r} has mode specified more than once",
            ))
        seen.add(mode)

    if "ABAC" in seen and not options.policy_file:
        errors.append(ValidationError(
            check="authorization-policy-file",
            kind=ErrorKind.MISSING,
            message="authorization-mode ABAC's authorization policy file not passed",
        ))
    if "Webhook" in seen and not options.webhook_config_file:
        errors.append(ValidationError(
            check="authorization-webhook-config-file",
            kind=ErrorKind.MISSING,
            message="authorization-mode Webhook's authorization config file not passed",
        ))
    if options.policy_file and "ABAC" not in seen:
        errors.append(ValidationError(
            check="authorization-policy-file",
            kind=ErrorKind.INCONSISTENT_SETTINGS,
            message="cannot specify --authorization-policy-file without mode ABAC",
        ))
    if options.webhook_config_file and "Webhook" not in seen:
        errors.append(ValidationError(
            check="authorization-webhook-config-file",
            kind=ErrorKind.INCONSISTENT_SETTINGS,
            message="cannot specify --authorization-webhook-config-file without mode Webhook",
        ))
    return errors


def validate_audit(options: AuditOptions) -> list[ValidationError]:
    errors = []
    for flag, value in (
        ("--audit-log-maxage", options.log_max_age),
        ("--audit-log-maxbackup", options.log_max_backups),
        ("--audit-log-maxsize", options.log_max_size),
    ):
        if value < 0:
            errors.append(ValidationError(
                check="audit-log-rotation",
                kind=ErrorKind.OUT_OF_RANGE,
                message=f"{flag} {value} can't be a negative number",
            ))
    if options.log_format not in AUDIT_LOG_FORMATS:
        errors.append(ValidationError(
            check="audit-log-format",
            kind=ErrorKind.MALFORMED,
            message=f"invalid audit log format {options.log_format}, allowed formats are {','.join(AUDIT_LOG_FORMATS)}",
        ))
    if (options.log_path or options.webhook_config_file) and not options.policy_file:
        errors.append(ValidationError(
            check="audit-policy-file",
            kind=ErrorKind.MISSING,
            message="--audit-policy-file is required when an audit backend is configured",
        ))
    return errors


def validate_admission(options: AdmissionOptions) -> list[ValidationError]:
    errors = []
    for flag, plugins in (
        ("--enable-admission-plugins", options.enable_plugins),
        ("--disable-admission-plugins", options.disable_plugins),
    ):
        for plugin in plugins:
            if plugin not in ADMISSION_PLUGINS:
                errors.append(ValidationError(
                    check="admission-plugins",
                    kind=ErrorKind.MALFORMED,
                    message=f"{flag} plugin {plugin!r} is unknown",
                ))

    overlap = sorted(set(options.enable_plugins) & set(options.disable_plugins))
    if overlap:
        errors.append(ValidationError(
            check="admission-plugins",
            kind=ErrorKind.INCONSISTENT_SETTINGS,
            message=f"{overlap} in --enable-admission-plugins and --disable-admission-plugins overlapped",
        ))
    return errors


def validate_api_enablement(
    options: APIEnablementOptions,
    registry: frozenset[str] = DEFAULT_API_REGISTRY,
) -> list[ValidationError]:
    """
    Check --runtime-config against the registered group versions.

    Args:
        options: API enablement options
        registry: Group versions known to the API server

    Returns:
        List of validation errors
    """
    errors = []
    for key, value in options.runtime_config.items():
        if key not in RUNTIME_CONFIG_ALIASES and key not in registry:
            errors.append(ValidationError(
                check="runtime-config",
                kind=ErrorKind.MALFORMED,
                message=f"--runtime-config {key!r} does not match any registered group version",
            ))
        if value not in ("true", "false"):
            errors.append(ValidationError(
                check="runtime-config",
                kind=ErrorKind.MALFORMED,
                message=f"--runtime-config {key}={value} is invalid, value must be true or false",
            ))
    return errors

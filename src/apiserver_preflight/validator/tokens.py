"""
Service account token feature checks.

Three gates interact here:
- TokenRequest: issue signed service account tokens
- BoundServiceAccountTokenVolume: mount bound tokens; needs TokenRequest
- ExternalKeyService: fetch signing keys from an external service instead of
  a local key file; needs TokenRequest

Each validator evaluates every rule and appends every match. There is no
early return, so several errors can be reported for one call.
"""

from urllib.parse import urlparse

from apiserver_preflight.config.options import ServerRunOptions
from apiserver_preflight.features import (
    BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME,
    EXTERNAL_KEY_SERVICE,
    TOKEN_REQUEST,
    FeatureGates,
)
from apiserver_preflight.validator.types import ErrorKind, ValidationError


KEY_SERVICE_URL_SCHEMES = ("unix", "http", "https", "grpc")


def _is_valid_key_service_url(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme not in KEY_SERVICE_URL_SCHEMES:
        return False
    if parsed.scheme == "unix":
        return bool(parsed.path)
    return bool(parsed.netloc)


def _bound_token_dependency(gates: FeatureGates) -> list[ValidationError]:
    if gates.enabled(BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME) and not gates.enabled(TOKEN_REQUEST):
        return [ValidationError(
            check="bound-token-volume-dependency",
            kind=ErrorKind.FEATURE_DEPENDENCY_UNMET,
            message=(
                f"the {BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME} feature depends on the "
                f"{TOKEN_REQUEST} feature, but the {TOKEN_REQUEST} feature is not enabled"
            ),
            fix=f"Add {TOKEN_REQUEST}=true to --feature-gates",
        )]
    return []


def validate_token_request(options: ServerRunOptions, gates: FeatureGates) -> list[ValidationError]:
    """
    Check token issuance from a local signing key file.

    Args:
        options: Completed run options
        gates: Feature gate states

    Returns:
        List of validation errors, in rule order
    """
    errors = []
    accounts = options.authentication.service_accounts

    enable_attempted = bool(
        options.service_account_signing_key_file
        or accounts.issuer
        or options.authentication.api_audiences
    )
    enable_succeeded = options.service_account_issuer is not None

    if enable_attempted and not gates.enabled(TOKEN_REQUEST):
        errors.append(ValidationError(
            check="token-request-gate",
            kind=ErrorKind.FEATURE_GATE_REQUIRED,
            message=(
                f"the {TOKEN_REQUEST} feature is not enabled but "
                "--service-account-signing-key-file, --service-account-issuer "
                "and/or --api-audiences flags were passed"
            ),
            fix=f"Add {TOKEN_REQUEST}=true to --feature-gates or remove the flags",
        ))

    errors.extend(_bound_token_dependency(gates))

    if not enable_attempted and gates.enabled(BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME):
        errors.append(ValidationError(
            check="token-request-flags",
            kind=ErrorKind.MISSING,
            message="--service-account-signing-key-file and --service-account-issuer are required flags",
        ))

    if enable_attempted and not enable_succeeded:
        errors.append(ValidationError(
            check="token-request-flags",
            kind=ErrorKind.INCONSISTENT_SETTINGS,
            message=(
                "--service-account-signing-key-file, --service-account-issuer, "
                "and --api-audiences should be specified together"
            ),
        ))

    return errors


def validate_external_key_server(options: ServerRunOptions, gates: FeatureGates) -> list[ValidationError]:
    """
    Check token issuance through an external key service.

    Args:
        options: Completed run options
        gates: Feature gate states

    Returns:
        List of validation errors, in rule order
    """
    errors = []
    accounts = options.authentication.service_accounts

    enable_attempted = bool(accounts.key_service_url)
    required_token_flags_set = bool(accounts.issuer)

    if enable_attempted and not gates.enabled(EXTERNAL_KEY_SERVICE):
        errors.append(ValidationError(
            check="external-key-service-gate",
            kind=ErrorKind.FEATURE_GATE_REQUIRED,
            message=f"the {EXTERNAL_KEY_SERVICE} feature is not enabled but --key-service-url flag was passed",
            fix=f"Add {EXTERNAL_KEY_SERVICE}=true to --feature-gates or remove --key-service-url",
        ))

    if gates.enabled(EXTERNAL_KEY_SERVICE) and not gates.enabled(TOKEN_REQUEST):
        errors.append(ValidationError(
            check="external-key-service-dependency",
            kind=ErrorKind.FEATURE_DEPENDENCY_UNMET,
            message=(
                f"the {EXTERNAL_KEY_SERVICE} feature depends on the {TOKEN_REQUEST} "
                f"feature, but the {TOKEN_REQUEST} feature is not enabled"
            ),
            fix=f"Add {TOKEN_REQUEST}=true to --feature-gates",
        ))

    if enable_attempted and not _is_valid_key_service_url(accounts.key_service_url):
        errors.append(ValidationError(
            check="external-key-service-url",
            kind=ErrorKind.MALFORMED,
            message=f"invalid --key-service-url specified: {accounts.key_service_url!r}",
            fix="Use an absolute URL such as unix:///var/run/kms.sock or https://kms.example:8443",
        ))

    errors.extend(_bound_token_dependency(gates))

    if enable_attempted and not required_token_flags_set:
        errors.append(ValidationError(
            check="external-key-service-flags",
            kind=ErrorKind.MISSING,
            message="the --key-service-url flag requires --service-account-issuer",
        ))

    return errors

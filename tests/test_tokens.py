"""Tests for the service account token feature checks."""

from apiserver_preflight.config import ServerRunOptions, complete
from apiserver_preflight.features import (
    BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME,
    EXTERNAL_KEY_SERVICE,
    TOKEN_REQUEST,
    FeatureGates,
)
from apiserver_preflight.validator import ErrorKind
from apiserver_preflight.validator.tokens import (
    validate_external_key_server,
    validate_token_request,
)


def _options(signing_key_file="", issuer="", audiences=None, key_service_url=""):
    options = ServerRunOptions(service_account_signing_key_file=signing_key_file)
    options.authentication.service_accounts.issuer = issuer
    options.authentication.service_accounts.key_service_url = key_service_url
    options.authentication.api_audiences = list(audiences or [])
    return complete(options)


def _kinds(errors):
    return [e.kind for e in errors]


class TestTokenRequest:
    """Tests for validate_token_request."""

    def test_nothing_set_nothing_enabled(self):
        assert validate_token_request(_options(), FeatureGates()) == []

    def test_complete_settings_with_gate(self):
        """Signing key plus issuer with TokenRequest on is valid."""
        options = _options(signing_key_file="/etc/sa.key", issuer="https://issuer")
        gates = FeatureGates({TOKEN_REQUEST: True, BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: True})

        assert validate_token_request(options, gates) == []

    def test_issuer_without_gate(self):
        """Setting the issuer with TokenRequest off needs the gate, and is incomplete."""
        errors = validate_token_request(_options(issuer="https://issuer"), FeatureGates())

        assert _kinds(errors) == [
            ErrorKind.FEATURE_GATE_REQUIRED,
            ErrorKind.INCONSISTENT_SETTINGS,
        ]

    def test_complete_settings_without_gate(self):
        """Complete settings still need the gate."""
        options = _options(signing_key_file="/etc/sa.key", issuer="https://issuer")
        errors = validate_token_request(options, FeatureGates())

        assert _kinds(errors) == [ErrorKind.FEATURE_GATE_REQUIRED]

    def test_audiences_alone_are_an_attempt(self):
        """--api-audiences alone counts as trying to enable token issuance."""
        errors = validate_token_request(
            _options(audiences=["api"]), FeatureGates({TOKEN_REQUEST: True})
        )
        assert _kinds(errors) == [ErrorKind.INCONSISTENT_SETTINGS]

    def test_bound_volume_without_token_request(self):
        """The dependency error fires regardless of the other settings."""
        gates = FeatureGates({BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: True})
        options = _options(signing_key_file="/etc/sa.key", issuer="https://issuer")

        errors = validate_token_request(options, gates)

        assert ErrorKind.FEATURE_DEPENDENCY_UNMET in _kinds(errors)

    def test_bound_volume_with_token_request_but_no_flags(self):
        """Prerequisite enabled but flags absent is a single missing-flags error."""
        gates = FeatureGates({TOKEN_REQUEST: True, BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: True})
        errors = validate_token_request(_options(), gates)

        assert _kinds(errors) == [ErrorKind.MISSING]
        assert "required flags" in errors[0].message

    def test_all_rules_evaluated(self):
        """No early return: gate, dependency and consistency errors co-occur."""
        gates = FeatureGates({BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: True})
        errors = validate_token_request(_options(signing_key_file="/etc/sa.key"), gates)

        assert _kinds(errors) == [
            ErrorKind.FEATURE_GATE_REQUIRED,
            ErrorKind.FEATURE_DEPENDENCY_UNMET,
            ErrorKind.INCONSISTENT_SETTINGS,
        ]


class TestExternalKeyServer:
    """Tests for validate_external_key_server."""

    ENABLED = {TOKEN_REQUEST: True, EXTERNAL_KEY_SERVICE: True}

    def test_complete_settings(self):
        options = _options(issuer="https://issuer", key_service_url="unix:///var/run/kms.sock")
        assert validate_external_key_server(options, FeatureGates(self.ENABLED)) == []

    def test_url_without_gate(self):
        """--key-service-url with ExternalKeyService off needs the gate."""
        options = _options(issuer="https://issuer", key_service_url="https://kms.internal:8443")
        errors = validate_external_key_server(options, FeatureGates({TOKEN_REQUEST: True}))

        assert _kinds(errors) == [ErrorKind.FEATURE_GATE_REQUIRED]

    def test_gate_without_token_request(self):
        errors = validate_external_key_server(_options(), FeatureGates({EXTERNAL_KEY_SERVICE: True}))
        assert _kinds(errors) == [ErrorKind.FEATURE_DEPENDENCY_UNMET]

    def test_both_dependent_gates_without_token_request(self):
        """Each dependent gate reports its own unmet dependency."""
        gates = FeatureGates({EXTERNAL_KEY_SERVICE: True, BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: True})
        errors = validate_external_key_server(_options(), gates)

        assert _kinds(errors) == [
            ErrorKind.FEATURE_DEPENDENCY_UNMET,
            ErrorKind.FEATURE_DEPENDENCY_UNMET,
        ]
        assert EXTERNAL_KEY_SERVICE in errors[0].message
        assert BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME in errors[1].message

    def test_url_requires_issuer(self):
        options = _options(key_service_url="unix:///var/run/kms.sock")
        errors = validate_external_key_server(options, FeatureGates(self.ENABLED))

        assert _kinds(errors) == [ErrorKind.MISSING]

    def test_malformed_url(self):
        options = _options(issuer="https://issuer", key_service_url="kms.internal")
        errors = validate_external_key_server(options, FeatureGates(self.ENABLED))

        assert _kinds(errors) == [ErrorKind.MALFORMED]
        assert "kms.internal" in errors[0].message

"""
Feature gates known to the API server preflight checks.

A FeatureGates object is built once (from the options file and the
--feature-gates flag) and then only queried. It is passed explicitly to the
validators instead of living in a process-wide singleton.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from apiserver_preflight.errors import FeatureGateError


TOKEN_REQUEST = "TokenRequest"
BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME = "BoundServiceAccountTokenVolume"
EXTERNAL_KEY_SERVICE = "ExternalKeyService"


@dataclass(frozen=True)
class FeatureSpec:
    """Description of a single gate."""
    name: str
    default: bool
    description: str
    depends_on: str | None = None


KNOWN_FEATURES: dict[str, FeatureSpec] = {
    TOKEN_REQUEST: FeatureSpec(
        name=TOKEN_REQUEST,
        default=False,
        description="Issue signed service account tokens through the TokenRequest API",
    ),
    BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME: FeatureSpec(
        name=BOUND_SERVICE_ACCOUNT_TOKEN_VOLUME,
        default=False,
        description="Mount bound, time-limited service account tokens as projected volumes",
        depends_on=TOKEN_REQUEST,
    ),
    EXTERNAL_KEY_SERVICE: FeatureSpec(
        name=EXTERNAL_KEY_SERVICE,
        default=False,
        description="Sign service account tokens with keys held by an external key service",
        depends_on=TOKEN_REQUEST,
    ),
}


class FeatureGates:
    """
    Immutable set of feature gate states.

    Unset gates take their default from KNOWN_FEATURES. Unknown names are
    rejected both at construction and at query time so a typo can never
    silently read as "disabled".
    """

    def __init__(self, overrides: Mapping[str, bool] | None = None):
        states = {name: spec.default for name, spec in KNOWN_FEATURES.items()}
        for name, value in (overrides or {}).items():
            if name not in KNOWN_FEATURES:
                raise FeatureGateError(f"unrecognized feature gate: {name}")
            if not isinstance(value, bool):
                raise FeatureGateError(f"feature gate {name} must be a boolean, got {value!r}")
            states[name] = value
        self._states = MappingProxyType(states)

    def enabled(self, name: str) -> bool:
        if name not in self._states:
            raise FeatureGateError(f"unrecognized feature gate: {name}")
        return self._states[name]

    def as_dict(self) -> dict[str, bool]:
        return dict(self._states)

    def merge(self, overrides: Mapping[str, bool]) -> "FeatureGates":
        """Return a new FeatureGates with overrides applied on top of this one."""
        merged = self.as_dict()
        merged.update(overrides)
        return FeatureGates(merged)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeatureGates):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:
        enabled = sorted(name for name, on in self._states.items() if on)
        return f"FeatureGates(enabled={enabled})"


def parse_feature_gates(value: str) -> dict[str, bool]:
    """
    Parse the --feature-gates syntax: "Name=true,Other=false".

    Args:
        value: Comma-separated list of Name=bool pairs. Blank means no overrides.

    Returns:
        Mapping of gate name to requested state
    """
    result: dict[str, bool] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, sep, raw = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise FeatureGateError(f"missing bool value for {item!r}")
        raw = raw.strip().lower()
        if raw not in ("true", "false"):
            raise FeatureGateError(f"invalid value of {name}={raw}, must be true or false")
        if name not in KNOWN_FEATURES:
            raise FeatureGateError(f"unrecognized feature gate: {name}")
        result[name] = raw == "true"
    return result

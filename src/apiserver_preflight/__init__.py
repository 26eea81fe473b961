"""
apiserver-preflight: Start-up option validation for the Kubernetes API server.

Reports every problem in a set of run options and feature gates in one pass,
before the server starts serving.
"""

__version__ = "0.1.0"

from apiserver_preflight.validator import validate_options, ValidationResults
from apiserver_preflight.features import FeatureGates
from apiserver_preflight.config import ServerRunOptions, complete, load_config

__all__ = [
    "validate_options",
    "ValidationResults",
    "FeatureGates",
    "ServerRunOptions",
    "complete",
    "load_config",
]

"""
porter.orchestration - Resolution Components
==============================================

The pieces the Navigator composes:

    - FormatNegotiator / EnvironmentCapabilities  (formats.py)
    - with_timeout / retry / retry_with_policy    (resilience.py)
    - ManifestResolver                            (manifest.py)
    - EventEmitter                                (events.py)
"""

from porter.orchestration.events import EventEmitter
from porter.orchestration.formats import EnvironmentCapabilities, FormatNegotiator
from porter.orchestration.manifest import ManifestResolver
from porter.orchestration.resilience import retry, retry_with_policy, with_timeout

__all__ = [
    "EnvironmentCapabilities",
    "FormatNegotiator",
    "ManifestResolver",
    "EventEmitter",
    "with_timeout",
    "retry",
    "retry_with_policy",
]

"""API client layer for CI-SNAPSHOT.

Async HTTP clients for the CI API:
- BaseAsyncClient: retrying transport with trace propagation
- CIApiClient: typed pipeline, build, release, log and stream operations
"""

from ci_snapshot.clients.base import BaseAsyncClient
from ci_snapshot.clients.ci_api import CIApiClient

__all__ = [
    "BaseAsyncClient",
    "CIApiClient",
]

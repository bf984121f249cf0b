"""Snapshot pipeline — API → Obfuscation → Mirrored files.

The pipeline coordinates the entire data flow:
1. Obtain a bearer token once
2. Fetch each configured pipeline and its build and release lists
3. Fan out bounded-concurrency units for builds, releases, logs and stats
4. Obfuscate every resource and persist it under its API path

Components:
- SnapshotScheduler: Main coordinator
- WorkerBudget: Concurrency limit with a drain barrier
- BuildUnit / ReleaseUnit / AuxiliaryUnit: Fan-out work
"""

from ci_snapshot.pipeline.budget import WorkerBudget
from ci_snapshot.pipeline.scheduler import SnapshotScheduler, SnapshotSummary

__all__ = ["SnapshotScheduler", "SnapshotSummary", "WorkerBudget"]

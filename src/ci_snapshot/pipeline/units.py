"""Fetch units: self-contained pieces of work fanned out per pipeline.

Each unit owns a copy of the identifiers it needs (pipeline path, resource
id or sub path) and performs fetch → obfuscate → persist for one resource
and its logs. Units share nothing mutable apart from the store, and every
unit writes distinct paths.
"""

from dataclasses import dataclass

from ci_snapshot import paths
from ci_snapshot.clients.ci_api import CIApiClient
from ci_snapshot.obfuscation import (
    LogObfuscator,
    obfuscate_build,
    obfuscate_release,
)
from ci_snapshot.storage import MirrorStore

RUNNING_STATUS = "running"


@dataclass(frozen=True)
class FetchContext:
    """Read-only state shared by all units of a run."""

    client: CIApiClient
    store: MirrorStore
    token: str
    scrub_log: LogObfuscator
    tail_running_logs: bool = False
    tail_max_events: int = 50


async def _save_log(ctx: FetchContext, logs_path: str, tail: bool) -> None:
    """Fetch, scrub and persist a log; optionally its live tail as well."""
    data = await ctx.client.get_bytes(ctx.token, logs_path)
    await ctx.store.write(logs_path, ctx.scrub_log(data))

    if tail:
        tail_path = paths.logs_tail_path(logs_path)
        events = await ctx.client.get_event_stream(ctx.token, tail_path, ctx.tail_max_events)
        await ctx.store.write(tail_path, ctx.scrub_log(events))


@dataclass(frozen=True)
class BuildUnit:
    """Build detail plus its logs."""

    pipeline: str
    build_id: str

    @property
    def resource_path(self) -> str:
        return paths.build_path(self.pipeline, self.build_id)

    async def run(self, ctx: FetchContext) -> None:
        build = await ctx.client.get_pipeline_build(ctx.token, self.resource_path)
        build = obfuscate_build(build)
        await ctx.store.write_model(self.resource_path, build)

        tail = ctx.tail_running_logs and build.build_status == RUNNING_STATUS
        await _save_log(ctx, paths.build_logs_path(self.pipeline, self.build_id), tail)


@dataclass(frozen=True)
class ReleaseUnit:
    """Release detail plus its logs."""

    pipeline: str
    release_id: str

    @property
    def resource_path(self) -> str:
        return paths.release_path(self.pipeline, self.release_id)

    async def run(self, ctx: FetchContext) -> None:
        release = await ctx.client.get_pipeline_release(ctx.token, self.resource_path)
        release = obfuscate_release(release)
        await ctx.store.write_model(self.resource_path, release)

        tail = ctx.tail_running_logs and release.release_status == RUNNING_STATUS
        await _save_log(ctx, paths.release_logs_path(self.pipeline, self.release_id), tail)


@dataclass(frozen=True)
class AuxiliaryUnit:
    """Warnings or statistics sub-resource, stored as returned."""

    pipeline: str
    sub_path: str

    @property
    def resource_path(self) -> str:
        return paths.auxiliary_path(self.pipeline, self.sub_path)

    async def run(self, ctx: FetchContext) -> None:
        data = await ctx.client.get_bytes(ctx.token, self.resource_path)
        await ctx.store.write(self.resource_path, data)


FetchUnit = BuildUnit | ReleaseUnit | AuxiliaryUnit

"""Scheduler — walks the pipeline hierarchy and materializes a snapshot.

For every configured pipeline, sequentially:
  1. Fetch the pipeline, obfuscate, persist (skipped when the API has none)
  2. Fetch the build and release lists, obfuscate, normalize pagination, persist
  3. Fan out bounded-concurrency units: builds, releases, warnings and stats
  4. Drain the worker budget before moving on to the next pipeline

Finally the extracted pipelines are persisted as one list.

Any error aborts the run: sibling units are cancelled and the first error is
re-raised to the caller. There is no partial-success mode.

Usage:
    scheduler = SnapshotScheduler(settings)
    summary = await scheduler.run()
"""

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from opentelemetry import trace

from ci_snapshot import paths
from ci_snapshot.clients.ci_api import CIApiClient
from ci_snapshot.config import Settings
from ci_snapshot.models import (
    Pagination,
    Pipeline,
    PipelinesListResponse,
    normalize_pagination,
)
from ci_snapshot.obfuscation import (
    LogObfuscator,
    obfuscate_build,
    obfuscate_pipeline,
    obfuscate_release,
)
from ci_snapshot.pipeline.budget import WorkerBudget
from ci_snapshot.pipeline.units import (
    AuxiliaryUnit,
    BuildUnit,
    FetchContext,
    FetchUnit,
    ReleaseUnit,
)
from ci_snapshot.storage import MirrorStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Page size advertised by the aggregated pipelines list
PIPELINES_PAGE_SIZE = 12


@dataclass
class SnapshotSummary:
    """Outcome of a completed snapshot run."""

    pipelines_extracted: list[str] = field(default_factory=list)
    pipelines_skipped: list[str] = field(default_factory=list)
    units_completed: int = 0
    files_written: int = 0
    peak_concurrency: int = 0
    duration_ms: float = 0.0


def _first_error(group: BaseExceptionGroup) -> BaseException:
    error: BaseException = group
    while isinstance(error, BaseExceptionGroup):
        error = error.exceptions[0]
    return error


def _unique_ids(items: Iterable, kind: str, pipeline: str) -> list[str]:
    """Ids of list items in order, without duplicates or missing ids."""
    ids: list[str] = []
    for item in items:
        if item.id is None:
            logger.warning("%s: skipping %s without id", pipeline, kind)
            continue
        item_id = str(item.id)
        if item_id not in ids:
            ids.append(item_id)
    return ids


class SnapshotScheduler:
    """Fetches, obfuscates and persists the snapshot of configured pipelines.

    Args:
        settings: Run configuration
        client: CI API client (default: built from settings)
        store: Snapshot store (default: rooted at settings.save_to_directory)
    """

    def __init__(
        self,
        settings: Settings,
        client: CIApiClient | None = None,
        store: MirrorStore | None = None,
    ) -> None:
        self.settings = settings
        self.client = client or CIApiClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
            max_connections=settings.concurrency,
            sse_idle_timeout=settings.sse_idle_timeout,
        )
        self.store = store or MirrorStore(base_path=settings.save_to_directory)
        self.scrub_log = LogObfuscator(settings.log_obfuscate_regex)
        self.budget = WorkerBudget(settings.concurrency)

    async def run(self) -> SnapshotSummary:
        """Extract every configured pipeline and persist the pipelines list.

        Returns:
            Summary of the run

        Raises:
            SnapshotError: The first failure of any fetch or write
        """
        start = time.monotonic()
        summary = SnapshotSummary()

        async with self.client:
            with tracer.start_as_current_span("SnapshotScheduler.run"):
                token = await self.client.get_token(
                    self.settings.client_id, self.settings.client_secret
                )
                ctx = FetchContext(
                    client=self.client,
                    store=self.store,
                    token=token,
                    scrub_log=self.scrub_log,
                    tail_running_logs=self.settings.tail_running_logs,
                    tail_max_events=self.settings.tail_max_events,
                )

                pipelines: list[Pipeline] = []
                for pipeline_path in self.settings.pipeline_paths:
                    pipeline = await self.extract_pipeline(ctx, pipeline_path)
                    if pipeline is None:
                        summary.pipelines_skipped.append(pipeline_path)
                        continue
                    pipelines.append(pipeline)
                    summary.pipelines_extracted.append(pipeline_path)

                await self._save_pipelines_list(pipelines)

        summary.units_completed = self.budget.completed
        summary.files_written = self.store.written_count
        summary.peak_concurrency = self.budget.peak
        summary.duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Snapshot complete: %d pipelines, %d skipped, %d files in %.0fms",
            len(summary.pipelines_extracted), len(summary.pipelines_skipped),
            summary.files_written, summary.duration_ms,
        )
        return summary

    async def extract_pipeline(self, ctx: FetchContext, pipeline_path: str) -> Pipeline | None:
        """Snapshot one pipeline and everything below it.

        Args:
            ctx: Shared fetch context
            pipeline_path: Pipeline path, e.g. ``github.com/acme/app``

        Returns:
            The obfuscated pipeline, or None if the API has no such pipeline
        """
        with tracer.start_as_current_span(
            "SnapshotScheduler.extract_pipeline",
            attributes={"ci_snapshot.pipeline": pipeline_path},
        ):
            pipeline = await ctx.client.get_pipeline(ctx.token, pipeline_path)
            if pipeline is None:
                logger.info("%s: no pipeline returned, skipping", pipeline_path)
                return None

            pipeline = obfuscate_pipeline(pipeline)
            await ctx.store.write_model(paths.pipeline_path(pipeline_path), pipeline)

            builds = await ctx.client.get_pipeline_builds(ctx.token, pipeline_path)
            builds.items = [obfuscate_build(b) for b in builds.items]
            normalize_pagination(builds)

            releases = await ctx.client.get_pipeline_releases(ctx.token, pipeline_path)
            releases.items = [obfuscate_release(r) for r in releases.items]
            normalize_pagination(releases)

            await ctx.store.write_model(paths.builds_path(pipeline_path), builds)
            await ctx.store.write_model(paths.releases_path(pipeline_path), releases)

            units: list[FetchUnit] = [
                BuildUnit(pipeline=pipeline_path, build_id=build_id)
                for build_id in _unique_ids(builds.items, "build", pipeline_path)
            ]
            units.extend(
                ReleaseUnit(pipeline=pipeline_path, release_id=release_id)
                for release_id in _unique_ids(releases.items, "release", pipeline_path)
            )
            units.extend(
                AuxiliaryUnit(pipeline=pipeline_path, sub_path=sub_path)
                for sub_path in paths.AUXILIARY_SUB_PATHS
            )

            logger.info(
                "%s: %d builds, %d releases, %d units to fetch",
                pipeline_path, len(builds.items), len(releases.items), len(units),
            )
            await self._fan_out(ctx, units)
            return pipeline

    async def _fan_out(self, ctx: FetchContext, units: list[FetchUnit]) -> None:
        """Run units with bounded concurrency and wait for all of them.

        Submission blocks while the budget is exhausted. The first failing
        unit cancels the rest and its error is re-raised.
        """
        try:
            async with asyncio.TaskGroup() as group:
                for unit in units:
                    await self.budget.acquire()
                    group.create_task(self._run_unit(ctx, unit))
                await self.budget.drain()
        except ExceptionGroup as eg:
            error = _first_error(eg)
            logger.error("Aborting fan-out after failure: %s", error)
            raise error

    async def _run_unit(self, ctx: FetchContext, unit: FetchUnit) -> None:
        try:
            await unit.run(ctx)
        finally:
            self.budget.release()

    async def _save_pipelines_list(self, pipelines: list[Pipeline]) -> None:
        response = PipelinesListResponse(
            items=pipelines,
            pagination=Pagination(
                page=1,
                size=PIPELINES_PAGE_SIZE,
                total_items=len(pipelines),
                total_pages=1,
            ),
        )
        await self.store.write_model(paths.PIPELINES_PATH, response)

"""Obfuscation of personally identifying data before anything is persisted.

Structured entities (pipelines, builds, releases) get their commit authors and
manual-event users replaced by fixed placeholders. Raw log bytes get service
account addresses scrubbed, plus any match of an optional caller-supplied
regular expression.

All functions are pure: they return obfuscated copies and leave their input
untouched. Applying them to already obfuscated data changes nothing.
"""

import re
from collections.abc import Iterable

from ci_snapshot.models import (
    Build,
    Commit,
    CommitAuthor,
    Event,
    Pipeline,
    Release,
    ReleaseTarget,
)

PLACEHOLDER_EMAIL = "me@example.com"
PLACEHOLDER_NAME = "Just Me"
PLACEHOLDER_USERNAME = "JustMe"
PLACEHOLDER_USER_ID = PLACEHOLDER_EMAIL

SERVICE_ACCOUNT_PATTERN = re.compile(rb"[a-z0-9-]+@[a-z0-9-]+\.iam\.gserviceaccount\.com")
SERVICE_ACCOUNT_PLACEHOLDER = b"***@***.iam.gserviceaccount.com"
EXTRA_PLACEHOLDER = b"***"


def _obfuscate_commits(commits: Iterable[Commit]) -> None:
    for commit in commits:
        author = commit.author or CommitAuthor()
        author.email = PLACEHOLDER_EMAIL
        author.name = PLACEHOLDER_NAME
        author.username = PLACEHOLDER_USERNAME
        commit.author = author


def _obfuscate_events(events: Iterable[Event]) -> None:
    for event in events:
        if event.manual is not None:
            event.manual.user_id = PLACEHOLDER_USER_ID


def _obfuscate_release_targets(release_targets: Iterable[ReleaseTarget]) -> None:
    for target in release_targets:
        for release in target.active_releases:
            _obfuscate_events(release.events)


def obfuscate_pipeline(pipeline: Pipeline) -> Pipeline:
    """Return a copy of ``pipeline`` with authors and manual users replaced."""
    result = pipeline.model_copy(deep=True)
    _obfuscate_commits(result.commits)
    _obfuscate_release_targets(result.release_targets)
    _obfuscate_events(result.events)
    return result


def obfuscate_build(build: Build) -> Build:
    """Return a copy of ``build`` with authors and manual users replaced."""
    result = build.model_copy(deep=True)
    _obfuscate_commits(result.commits)
    _obfuscate_release_targets(result.release_targets)
    _obfuscate_events(result.events)
    return result


def obfuscate_release(release: Release) -> Release:
    """Return a copy of ``release`` with manual users replaced."""
    result = release.model_copy(deep=True)
    _obfuscate_events(result.events)
    return result


def compile_extra_pattern(pattern: str | None) -> re.Pattern[bytes] | None:
    """Compile a user-supplied log pattern for matching against raw bytes.

    Raises:
        re.error: If the pattern is not a valid regular expression
    """
    if not pattern:
        return None
    return re.compile(pattern.encode("utf-8"))


def obfuscate_log(data: bytes, extra_pattern: re.Pattern[bytes] | None = None) -> bytes:
    """Scrub service account addresses, then matches of ``extra_pattern``.

    Args:
        data: Raw log bytes
        extra_pattern: Optional compiled pattern whose matches become ``***``

    Returns:
        Scrubbed bytes; bytes outside any match are unchanged
    """
    data = SERVICE_ACCOUNT_PATTERN.sub(SERVICE_ACCOUNT_PLACEHOLDER, data)
    if extra_pattern is not None:
        data = extra_pattern.sub(EXTRA_PLACEHOLDER, data)
    return data


class LogObfuscator:
    """Log scrubber bound to the configured extra pattern.

    Args:
        extra_pattern: Regular expression (as text) whose matches are replaced
            with ``***`` after service account scrubbing. None disables it.

    Usage:
        scrub = LogObfuscator(settings.log_obfuscate_regex)
        clean = scrub(raw_log_bytes)
    """

    def __init__(self, extra_pattern: str | None = None) -> None:
        self.extra_pattern = compile_extra_pattern(extra_pattern)

    def __call__(self, data: bytes) -> bytes:
        return obfuscate_log(data, self.extra_pattern)

"""Resource paths for the CI API.

A resource path is the logical API path of a resource (for example
``/api/pipelines/github.com/acme/app/builds/42/logs``). It is used both to
build the request URL and, verbatim, as the on-disk key of the snapshot file.
"""

API_ROOT = "/api"
PIPELINES_PATH = f"{API_ROOT}/pipelines"
LOGIN_PATH = f"{API_ROOT}/auth/client/login"

# Per-pipeline sub-resources fetched as raw bytes
AUXILIARY_SUB_PATHS: tuple[str, ...] = (
    "warnings",
    "stats/buildsdurations",
    "stats/buildscpu",
    "stats/buildsmemory",
    "stats/releasesdurations",
    "stats/releasescpu",
    "stats/releasesmemory",
)


def _clean(segment: str | int) -> str:
    return str(segment).strip("/")


def pipeline_path(pipeline: str) -> str:
    return f"{PIPELINES_PATH}/{_clean(pipeline)}"


def builds_path(pipeline: str) -> str:
    return f"{pipeline_path(pipeline)}/builds"


def build_path(pipeline: str, build_id: str | int) -> str:
    return f"{builds_path(pipeline)}/{_clean(build_id)}"


def build_logs_path(pipeline: str, build_id: str | int) -> str:
    return f"{build_path(pipeline, build_id)}/logs"


def releases_path(pipeline: str) -> str:
    return f"{pipeline_path(pipeline)}/releases"


def release_path(pipeline: str, release_id: str | int) -> str:
    return f"{releases_path(pipeline)}/{_clean(release_id)}"


def release_logs_path(pipeline: str, release_id: str | int) -> str:
    return f"{release_path(pipeline, release_id)}/logs"


def logs_tail_path(logs_path: str) -> str:
    """Server-sent-event stream that follows a running build or release log."""
    return f"{logs_path}/tail"


def auxiliary_path(pipeline: str, sub_path: str) -> str:
    return f"{pipeline_path(pipeline)}/{_clean(sub_path)}"

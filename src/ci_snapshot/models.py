"""Pydantic models for the CI API entities captured in a snapshot.

Only the fields the extractor reads or rewrites are declared. Everything else
the upstream sends is kept as an extra field, so a snapshot written with
``to_json`` contains the upstream document unchanged apart from the
obfuscated values and normalized pagination.

Wire names are camelCase; the manual event's user field is ``userID``.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for all upstream entities: camelCase aliases, extras preserved."""

    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json(self) -> bytes:
        """Serialize as pretty-printed JSON using upstream field names.

        Fields the upstream omitted are left out again.
        """
        return self.model_dump_json(
            by_alias=True,
            exclude_unset=True,
            indent=2,
        ).encode("utf-8")


class Pagination(APIModel):
    page: int = 1
    size: int = 0
    total_pages: int = 0
    total_items: int = 0


class CommitAuthor(APIModel):
    email: str | None = None
    name: str | None = None
    username: str | None = None


class Commit(APIModel):
    message: str | None = None
    author: CommitAuthor | None = None


class ManualEvent(APIModel):
    user_id: str | None = Field(default=None, alias="userID")


class Event(APIModel):
    """Tagged event variant.

    Only the ``manual`` case carries identifying data; the other cases
    (git, pipeline, release, docker, cron, pubsub) pass through as extras.
    """

    fired: bool | None = None
    manual: ManualEvent | None = None


class Release(APIModel):
    id: str | int | None = None
    name: str | None = None
    action: str | None = None
    release_status: str | None = None
    events: list[Event] = Field(default_factory=list)


class ReleaseTarget(APIModel):
    name: str | None = None
    active_releases: list[Release] = Field(default_factory=list)


class Build(APIModel):
    id: str | int | None = None
    build_status: str | None = None
    commits: list[Commit] = Field(default_factory=list)
    release_targets: list[ReleaseTarget] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)


class Pipeline(APIModel):
    id: str | int | None = None
    repo_source: str | None = None
    repo_owner: str | None = None
    repo_name: str | None = None
    commits: list[Commit] = Field(default_factory=list)
    release_targets: list[ReleaseTarget] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)

    @property
    def path(self) -> str:
        """Pipeline path as used in API URLs (``source/owner/name``)."""
        parts = [self.repo_source, self.repo_owner, self.repo_name]
        return "/".join(p for p in parts if p)


class PipelinesListResponse(APIModel):
    items: list[Pipeline] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class BuildsListResponse(APIModel):
    items: list[Build] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class ReleasesListResponse(APIModel):
    items: list[Release] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


ListResponse = PipelinesListResponse | BuildsListResponse | ReleasesListResponse


def normalize_pagination(response: ListResponse) -> None:
    """Make a list response's pagination describe the items it holds.

    Upstream pagination reflects the server-side result set; a snapshot only
    contains one page, so total pages is always 1 and total items is the
    number of items kept.
    """
    pagination = response.pagination
    pagination.total_pages = 1
    pagination.total_items = len(response.items)
    # reassign so the field is serialized even when upstream omitted it
    response.pagination = pagination

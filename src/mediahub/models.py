from datetime import UTC, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

SiteStatus = Literal["active", "inactive", "maintenance"]
MediaType = Literal["movie", "tv"]
MediaTypeFilter = Literal["movie", "tv", "all"]

DEFAULT_ACCEPTED_QUALITIES = frozenset({"HD", "1080P", "4K", "Blu-ray", "蓝光"})


class SiteDescriptor(BaseModel):
    """One configured resource site.

    Config files use the short keys (``api``, ``name``, ``detail``); the long
    names are accepted too so descriptors round-trip through ``model_dump``.
    """

    model_config = ConfigDict(populate_by_name=True)

    key: str
    endpoint: str = Field(validation_alias=AliasChoices("endpoint", "api"))
    display_name: str = Field(validation_alias=AliasChoices("display_name", "name"))
    detail_url_template: str | None = Field(
        default=None, validation_alias=AliasChoices("detail_url_template", "detail")
    )
    priority: int = 0
    status: SiteStatus = "active"
    adapter: str = "generic"
    last_checked_at: datetime | None = None
    last_response_time_ms: float | None = None


class SiteStatusRecord(BaseModel):
    """Result of probing one site."""

    model_config = ConfigDict(frozen=True)

    key: str
    status: SiteStatus
    checked_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    response_time_ms: float | None = None
    error: str | None = None


class StatusSnapshot(BaseModel):
    """Immutable, versioned view of every site's last probe result."""

    model_config = ConfigDict(frozen=True)

    version: int = 0
    taken_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    statuses: dict[str, SiteStatusRecord] = {}

    def get(self, key: str) -> SiteStatusRecord | None:
        return self.statuses.get(key)


class ResourceFilters(BaseModel):
    exclude_low_quality: bool = False
    accepted_qualities: frozenset[str] = DEFAULT_ACCEPTED_QUALITIES


class AppConfig(BaseModel):
    """Everything the config source supplies: sites in declaration order plus filters."""

    api_sites: dict[str, SiteDescriptor]
    resource_filters: ResourceFilters = ResourceFilters()

    def sites(self) -> list[SiteDescriptor]:
        return list(self.api_sites.values())


class SearchQuery(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    keyword: str = Field(min_length=1)
    media_type: MediaTypeFilter = "all"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class MediaRecord(BaseModel):
    """Canonical, source-agnostic search result returned by every site adapter."""

    id: str
    title: str
    cover: str | None = None
    media_type: MediaType = "tv"
    year: str | None = None
    score: float | None = None
    quality: str | None = None
    language: str | None = None
    update_time: str | None = None
    source_site_key: str
    source_display_name: str
    url: str | None = None


class SiteOutcome(BaseModel):
    """How one dispatched site fared during a search."""

    key: str
    ok: bool
    count: int = 0
    error: str | None = None
    duration_seconds: float = 0.0


class SearchReport(BaseModel):
    """Summary of a search run: ranked records plus per-site outcomes."""

    query: SearchQuery
    records: list[MediaRecord] = []
    outcomes: list[SiteOutcome] = []

    @property
    def dispatched(self) -> list[str]:
        return [o.key for o in self.outcomes]

    @property
    def failed(self) -> list[str]:
        return [o.key for o in self.outcomes if not o.ok]


class AdapterInfo(BaseModel):
    """Metadata about a response adapter, used by the adapters command."""

    name: str
    display_name: str
    description: str = ""

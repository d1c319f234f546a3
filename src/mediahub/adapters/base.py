import random
import time
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from mediahub.models import AdapterInfo, MediaRecord, SearchQuery, SiteDescriptor

_MOVIE_TAGS = frozenset({"电影", "movie"})


def as_str(value: Any) -> str | None:
    """Coerce a raw scalar to a stripped string, or None when absent/blank."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def first_present(raw: dict[str, Any], *fields: str) -> Any:
    """Value of the first field that is present, truthy and not a nested object."""
    for name in fields:
        value = raw.get(name)
        if value and not isinstance(value, (dict, list)):
            return value
    return None


def media_type_from_tag(tag: Any) -> str:
    return "movie" if as_str(tag) in _MOVIE_TAGS else "tv"


def synthesize_id(site_key: str) -> str:
    """``{site_key}-{ms timestamp}-{random}``: unique within one response batch."""
    return f"{site_key}-{int(time.time() * 1000)}-{random.random()}"


def detail_url(site: SiteDescriptor, item_id: str) -> str | None:
    if not site.detail_url_template:
        return None
    return f"{site.detail_url_template.rstrip('/')}/{item_id}.html"


class SiteAdapter(ABC):
    """Base class for response adapters.

    Each resource site's API returns its own JSON layout. An adapter knows
    how to build the query for one layout and how to turn one raw list entry
    into a MediaRecord. Sites pick an adapter by name in the config.

    To add a new layout:
    1. Create src/mediahub/adapters/mylayout.py, subclass SiteAdapter
    2. Implement build_params() and normalize()
    3. In adapters/__init__.py, import and call register(MyLayoutAdapter)
    """

    name: ClassVar[str]
    display_name: ClassVar[str]
    description: ClassVar[str] = ""
    # Top-level keys that may hold the result list, tried in order
    result_fields: ClassVar[tuple[str, ...]] = ("list", "data")

    @abstractmethod
    def build_params(self, query: SearchQuery) -> dict[str, Any]:
        """Query-string parameters for one search request."""
        ...

    @abstractmethod
    def normalize(self, raw: dict[str, Any], site: SiteDescriptor) -> MediaRecord:
        """Turn one raw result entry into a MediaRecord."""
        ...

    def extract_items(self, body: Any) -> list[dict[str, Any]]:
        """Result list from the first populated result field; [] when none is."""
        if not isinstance(body, dict):
            return []
        for name in self.result_fields:
            value = body.get(name)
            if isinstance(value, list) and value:
                return [item for item in value if isinstance(item, dict)]
        return []

    @classmethod
    def get_info(cls) -> AdapterInfo:
        return AdapterInfo(
            name=cls.name,
            display_name=cls.display_name,
            description=cls.description,
        )

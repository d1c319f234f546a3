"""Generic resource-site adapter.

Covers the loosely-shaped JSON most aggregator sites return:

    {"list": [{"id": 1, "title": "...", "cover": "...", "type": "电影", ...}]}

Field names vary between sites, so each canonical field is read from a
short list of alternatives (``title``/``name``, ``cover``/``img``) and the
result list itself may sit under ``list`` or ``data``.
"""

from typing import Any

from mediahub.adapters.base import (
    SiteAdapter,
    as_float,
    as_str,
    detail_url,
    first_present,
    media_type_from_tag,
    synthesize_id,
)
from mediahub.models import MediaRecord, SearchQuery, SiteDescriptor


class GenericAdapter(SiteAdapter):
    """Default adapter for ``list``/``data`` style search APIs.

    Query parameters: ``wd`` (keyword), ``type`` (empty for all), ``page``,
    ``limit``.
    """

    name = "generic"
    display_name = "Generic JSON API"
    description = "title/name, cover/img fields under a list or data key"

    def build_params(self, query: SearchQuery) -> dict[str, Any]:
        return {
            "wd": query.keyword,
            "type": "" if query.media_type == "all" else query.media_type,
            "page": query.page,
            "limit": query.limit,
        }

    def normalize(self, raw: dict[str, Any], site: SiteDescriptor) -> MediaRecord:
        item_id = as_str(raw.get("id")) or synthesize_id(site.key)
        title = as_str(first_present(raw, "title", "name"))
        if title is None:
            raise ValueError(f"item {item_id} from {site.key} has no title")

        return MediaRecord(
            id=item_id,
            title=title,
            cover=as_str(first_present(raw, "cover", "img")),
            media_type=media_type_from_tag(raw.get("type")),
            year=as_str(raw.get("year")),
            score=as_float(raw.get("score")),
            quality=as_str(raw.get("quality")),
            language=as_str(raw.get("language")),
            update_time=as_str(raw.get("update_time")),
            source_site_key=site.key,
            source_display_name=site.display_name,
            url=as_str(raw.get("url")) or detail_url(site, item_id),
        )

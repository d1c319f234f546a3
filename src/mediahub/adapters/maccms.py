"""Adapter for MacCMS-style collection APIs.

Many resource sites expose the same ``/api.php/provide/vod`` interface:

    GET ?ac=detail&wd=<keyword>&pg=<page>
    {"code": 1, "page": 1, "list": [{"vod_id": 1, "vod_name": "...", ...}]}

Entries carry a ``vod_`` prefix on every field; quality lives in
``vod_remarks`` and the category label (``电影``, ``电视剧`` ...) in
``type_name``. The ``t`` filter takes a per-site numeric category id, so
the movie/tv restriction is never sent upstream.
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


class MacCmsAdapter(SiteAdapter):
    name = "maccms"
    display_name = "MacCMS collection API"
    description = "vod_* fields from /api.php/provide/vod endpoints"

    def build_params(self, query: SearchQuery) -> dict[str, Any]:
        return {
            "ac": "detail",
            "wd": query.keyword,
            "pg": query.page,
            "limit": query.limit,
        }

    def normalize(self, raw: dict[str, Any], site: SiteDescriptor) -> MediaRecord:
        item_id = as_str(raw.get("vod_id")) or synthesize_id(site.key)
        title = as_str(first_present(raw, "vod_name", "vod_sub"))
        if title is None:
            raise ValueError(f"item {item_id} from {site.key} has no vod_name")

        return MediaRecord(
            id=item_id,
            title=title,
            cover=as_str(first_present(raw, "vod_pic", "vod_pic_thumb")),
            media_type=media_type_from_tag(raw.get("type_name")),
            year=as_str(raw.get("vod_year")),
            score=as_float(raw.get("vod_score")),
            quality=as_str(raw.get("vod_remarks")),
            language=as_str(raw.get("vod_lang")),
            update_time=as_str(raw.get("vod_time")),
            source_site_key=site.key,
            source_display_name=site.display_name,
            url=detail_url(site, item_id),
        )

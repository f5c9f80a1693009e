"""
Landing page URL canonicalisation and merging of duplicate landing page records.
"""
import logging
import re
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

import utils

logger = logging.getLogger("app.url_normalizer")

TRACKING_PARAMS = {
    "fbclid",       # Facebook click identifier
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",        # Google click identifier
    "dclid",        # DoubleClick click identifier
    "msclkid",      # Microsoft click identifier
    "_ga",
    "_gl",
    "ref",
    "source",
    "medium",
}

TRAILING_JUNK = re.compile(r"[\s/]+$")


def normalize_url(url):
    """Canonical form of a URL, or the input unchanged if it can't be parsed"""
    if not isinstance(url, str):
        return url
    try:
        parts = urlsplit(url.strip())
        netloc = parts.netloc.strip()
        if not parts.scheme or not netloc:
            return url
        # Raises ValueError for a malformed port
        parts.port
    except ValueError:
        logger.debug(f"Could not normalize URL: {url!r}")
        return url

    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
             if k.lower() not in TRACKING_PARAMS]

    # "/", "/a/" and "/a /" all lose their tail
    path = TRAILING_JUNK.sub("", parts.path)

    return urlunsplit((
        parts.scheme.lower(),
        netloc.lower(),
        path,
        urlencode(query, doseq=True),
        "",
    ))


def _field(page, name):
    if isinstance(page, dict):
        return page.get(name)
    return getattr(page, name, None)


def _later(a, b):
    ta, tb = utils.to_datetime(a), utils.to_datetime(b)
    if ta is None:
        return b
    if tb is None:
        return a
    return b if tb > ta else a


def group_by_normalized_url(pages):
    """Merge landing pages sharing a normalized URL, in first-seen order.

    Visits and users add up, conversionRate becomes the user-weighted average
    (kept as is when both sides have zero users), lastAccess takes the latest
    value, originalUrls keeps every raw URL folded into the group.
    """
    groups = {}

    for page in pages or []:
        raw_url = _field(page, "url")
        normalized = normalize_url(raw_url)

        if normalized not in groups:
            groups[normalized] = {
                "id": _field(page, "id"),
                "url": normalized,
                "normalized_url": normalized,
                "title": _field(page, "title"),
                "total_visits": _field(page, "total_visits") or 0,
                "unique_users": _field(page, "unique_users") or 0,
                "conversion_rate": float(_field(page, "conversion_rate") or 0.0),
                "last_access": _field(page, "last_access"),
                "original_urls": [raw_url],
            }
            continue

        group = groups[normalized]
        page_users = _field(page, "unique_users") or 0
        page_rate = float(_field(page, "conversion_rate") or 0.0)

        weight = group["unique_users"] + page_users
        if weight > 0:
            group["conversion_rate"] = (
                group["conversion_rate"] * group["unique_users"] + page_rate * page_users
            ) / weight

        group["total_visits"] += _field(page, "total_visits") or 0
        group["unique_users"] = weight
        group["last_access"] = _later(group["last_access"], _field(page, "last_access"))
        group["original_urls"].append(raw_url)
        if not group["title"]:
            group["title"] = _field(page, "title")

    return list(groups.values())

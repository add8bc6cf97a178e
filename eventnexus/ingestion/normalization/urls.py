"""
eventnexus.ingestion.normalization.urls

URL canonicalization. Canonical URLs feed external id derivation, so two
spellings of the same listing link must collapse to one string.
"""

from __future__ import annotations

from typing import Sequence
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

TRACKING_PARAMS: tuple[str, ...] = (
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "aff",
    "ref",
    "_gl",
)


def absolutize(url: str | None, base_url: str | None) -> str:
    """Resolve a possibly relative link against the page it was found on."""
    url = (url or "").strip()
    if not url:
        return ""
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("//"):
        return "https:" + url
    if not base_url:
        return url
    return urljoin(base_url, url)


def canonicalize_url(
    url: str,
    *,
    allow_fragments: bool = False,
    drop_tracking_params: bool = True,
    tracking_params: Sequence[str] = TRACKING_PARAMS,
) -> str:
    url = (url or "").strip()
    if not url:
        return url

    try:
        parts = urlparse(url)
    except ValueError:
        return url

    scheme = (parts.scheme or "https").lower()
    netloc = parts.netloc.lower()

    if netloc.endswith(":80") and scheme == "http":
        netloc = netloc[:-3]
    if netloc.endswith(":443") and scheme == "https":
        netloc = netloc[:-4]

    path = parts.path or "/"
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")

    query_pairs = parse_qsl(parts.query, keep_blank_values=True)
    if drop_tracking_params:
        drop = {p.lower() for p in tracking_params}
        query_pairs = [(k, v) for (k, v) in query_pairs if k.lower() not in drop]

    query_pairs.sort(key=lambda kv: (kv[0], kv[1]))
    query = urlencode(query_pairs, doseq=True)

    fragment = parts.fragment if allow_fragments else ""
    return urlunparse((scheme, netloc, path, parts.params, query, fragment))

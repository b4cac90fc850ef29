"""
Builders for the tracking artefacts embedded in a sent resume.

A pixel image reports a ``pixel`` hit when the resume is opened, and each
outbound link is rewritten to pass through the redirect endpoint, which
records a ``link`` hit before forwarding to the original target.
"""

import re
from urllib.parse import quote, urlencode

from resume_tracker.config import settings

PIXEL_PATH = "/api/tracking/pixel"
LINK_PATH = "/api/tracking/link"

# Characters encodeURIComponent leaves alone
_URI_COMPONENT_SAFE = "-_.!~*'()"

_ANCHOR_HREF = re.compile(r'<a\s+((?:[^>]*?\s+)?)href="([^"]*)"([^>]*)>', re.IGNORECASE)


def _base_url(base_url: str | None) -> str:
    return (base_url or settings.TRACKING_BASE_URL).rstrip("/")


def _query(params: dict[str, str]) -> str:
    return urlencode(params, quote_via=quote, safe=_URI_COMPONENT_SAFE)


def generate_pixel_url(resume_id: str, *, base_url: str | None = None) -> str:
    return f"{_base_url(base_url)}{PIXEL_PATH}?{_query({'id': resume_id})}"


def generate_tracking_link(resume_id: str, target_url: str, *, base_url: str | None = None) -> str:
    """Redirect URL that records a link hit, then forwards to ``target_url``."""
    query = _query({"id": resume_id, "url": target_url})
    return f"{_base_url(base_url)}{LINK_PATH}?{query}"


def embed_tracking_pixel(resume_id: str, *, base_url: str | None = None) -> str:
    pixel_url = generate_pixel_url(resume_id, base_url=base_url)
    return (
        f'<img src="{pixel_url}" alt="" width="1" height="1" '
        'style="position:absolute;opacity:0" />'
    )


def replace_links_with_tracking(html: str, resume_id: str, *, base_url: str | None = None) -> str:
    """
    Rewrite every ``<a href="...">`` to go through the redirect endpoint.

    Attributes around ``href`` are kept. Links that already point at the
    redirect endpoint are left alone, so the rewrite can be applied twice.
    """
    link_prefix = f"{_base_url(base_url)}{LINK_PATH}?"

    def _rewrite(match: re.Match) -> str:
        before, url, after = match.groups()
        if url.startswith(link_prefix):
            return match.group(0)
        tracking_url = generate_tracking_link(resume_id, url, base_url=base_url)
        return f'<a {before}href="{tracking_url}"{after}>'

    return _ANCHOR_HREF.sub(_rewrite, html)


def process_resume_content(content: str, resume_id: str, *, base_url: str | None = None) -> str:
    """Rewrite the links in a resume body and append the tracking pixel."""
    processed = replace_links_with_tracking(content, resume_id, base_url=base_url)
    return processed + embed_tracking_pixel(resume_id, base_url=base_url)

from __future__ import annotations
from html.parser import HTMLParser
import structlog

log = structlog.get_logger()


class _FirstIframe(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.src: str | None = None

    def handle_starttag(self, tag, attrs):
        if self.src is None and tag == "iframe":
            self.src = dict(attrs).get("src") or ""

    handle_startendtag = handle_starttag


def extract_figma_url(embed_code: str | None) -> str:
    """Return the src of the first <iframe> in an embed snippet, or "" if there is none."""
    if not embed_code:
        return ""
    parser = _FirstIframe()
    try:
        parser.feed(embed_code)
        # only tags closed with ">" count; whatever close() flushes is ignored
        src = parser.src
        parser.close()
    except Exception as e:
        log.warning("figma_embed_parse_failed", error=str(e))
        return ""
    return (src or "").strip()

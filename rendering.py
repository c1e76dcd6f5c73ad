"""Markdown rendering for memo bodies and comments (GFM-ish, math, fenced code)."""

from __future__ import annotations

import bleach
import markdown
from bleach.callbacks import nofollow, target_blank

EMPTY_PREVIEW = "*Nothing to preview*"

EXTENSIONS = ["fenced_code", "tables", "sane_lists", "nl2br", "pymdownx.tilde", "pymdownx.arithmatex"]
EXTENSION_CONFIGS = {
    # Leave \( \) and \[ \] delimiters for KaTeX auto-render in the browser.
    "pymdownx.arithmatex": {"generic": True},
}

ALLOWED_TAGS = frozenset(bleach.sanitizer.ALLOWED_TAGS) | {
    "p", "br", "hr", "pre", "span", "div", "del", "img",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "table", "thead", "tbody", "tr", "th", "td",
}
ALLOWED_ATTRIBUTES = {
    **bleach.sanitizer.ALLOWED_ATTRIBUTES,
    "a": ["href", "title", "rel", "target"],
    "img": ["src", "alt", "title"],
    "code": ["class"],
    "span": ["class"],
    "div": ["class"],
    "th": ["align"],
    "td": ["align"],
}


def render_markdown(text: str | None) -> str:
    """Render untrusted Markdown to sanitized HTML."""
    source = text if text and text.strip() else EMPTY_PREVIEW
    html = markdown.markdown(source, extensions=EXTENSIONS, extension_configs=EXTENSION_CONFIGS)
    html = bleach.clean(html, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)
    # External links open in a new tab, like the memo's own URL field.
    return bleach.linkify(html, callbacks=[nofollow, target_blank], skip_tags={"pre", "code"})

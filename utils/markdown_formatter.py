"""Markdown source for outbound emails, rendered to sanitized HTML and plaintext."""
import re
from typing import Dict, List, Optional

import bleach
from markdown_it import MarkdownIt


# Single parser reused for performance; HTML disabled for safety
_md = MarkdownIt("commonmark", {"linkify": True, "typographer": True, "html": False}).enable(["linkify", "table", "strikethrough"])

EMAIL_ALLOWED_TAGS = [
    "p",
    "ul",
    "ol",
    "li",
    "strong",
    "em",
    "h1",
    "h2",
    "h3",
    "h4",
    "table",
    "thead",
    "tbody",
    "tr",
    "th",
    "td",
    "hr",
    "a",
    "br",
]

ALLOWED_ATTRIBUTES = {
    "a": ["href", "title", "rel", "target"],
    "th": ["colspan", "rowspan", "align"],
    "td": ["colspan", "rowspan", "align"],
}


def _normalize_whitespace(text: str) -> str:
    cleaned = re.sub(r"[\r\t]+", " ", text or "")
    cleaned = re.sub(r" +", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def markdown_to_email_html(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    return bleach.clean(rendered, tags=EMAIL_ALLOWED_TAGS, attributes=ALLOWED_ATTRIBUTES, strip=True)


def markdown_to_plaintext(md_text: str) -> str:
    rendered = _md.render(_normalize_whitespace(md_text))
    text_only = bleach.clean(rendered, tags=[], attributes={}, strip=True)
    return re.sub(r"\s+", " ", text_only).strip()


def format_sections(sections: List[Dict[str, object]]) -> str:
    """Build markdown from an ordered list of sections."""
    parts: List[str] = []
    for section in sections:
        title = _normalize_whitespace(str(section.get("title", "") or ""))
        if title:
            parts.append(f"## {title}")
        body = section.get("body") or ""
        if body:
            parts.append(_normalize_whitespace(str(body)))
        for bullet in section.get("bullets") or []:
            if bullet is None:
                continue
            bullet_text = _normalize_whitespace(str(bullet))
            if bullet_text:
                parts.append(f"- {bullet_text}")
        parts.append("")
    return "\n\n".join(p for p in parts if p.strip())


def _escape_markdown(value: str) -> str:
    return re.sub(r"([\\`*_\[\]#<>])", r"\\\1", value or "")


def format_status_update_markdown(
    message: str,
    *,
    complaint_title: str,
    reference_code: Optional[str],
    status_words: str,
    track_url: Optional[str] = None,
) -> str:
    bullets = [
        f"Complaint: {_escape_markdown(complaint_title)}",
        f"Reference: {reference_code}" if reference_code else None,
        f"Current status: {status_words}",
    ]
    sections: List[Dict[str, object]] = [
        {"body": _escape_markdown(message)},
        {"title": "Complaint Reference", "bullets": bullets},
    ]
    if track_url:
        sections.append({"body": f"[Track your complaint]({track_url})"})
    return format_sections(sections)

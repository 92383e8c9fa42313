from __future__ import annotations

import html
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

PDF_TITLE_RE = re.compile(r"/Title \(([^\)]+)\)")
PDF_COUNT_RE = re.compile(r"/Count (\d+)")
HTML_TITLE_RE = re.compile(r"<title>([^<]*)</title>", flags=re.IGNORECASE)
SGF_META_PROPS = ("PB", "PW", "KM", "DT", "EV")
_SGF_PROP_RES = {prop: re.compile(rf"{prop}\[([^\]]*)\]") for prop in SGF_META_PROPS}


@dataclass(slots=True)
class ExtractedMetadata:
    title: str | None = None
    pages: int | None = None
    meta: dict[str, str] = field(default_factory=dict)

    @property
    def meta_json(self) -> str | None:
        return json.dumps(self.meta, ensure_ascii=False, sort_keys=True) if self.meta else None


def read_pdf_metadata(data: bytes) -> ExtractedMetadata:
    # latin-1 maps every byte, so binary streams never break the regexes
    text = data.decode("latin-1")
    title_match = PDF_TITLE_RE.search(text)
    count_match = PDF_COUNT_RE.search(text)
    return ExtractedMetadata(
        title=title_match.group(1) if title_match else None,
        pages=int(count_match.group(1)) if count_match else None,
    )


def read_sgf_metadata(text: str) -> ExtractedMetadata:
    meta: dict[str, str] = {}
    for prop, pattern in _SGF_PROP_RES.items():
        match = pattern.search(text)
        if match:
            meta[prop] = match.group(1)
    title = meta.get("EV") or f"{meta.get('PB') or 'Black'} vs {meta.get('PW') or 'White'}"
    return ExtractedMetadata(title=title, meta=meta)


def read_html_metadata(text: str) -> ExtractedMetadata:
    match = HTML_TITLE_RE.search(text)
    if not match:
        return ExtractedMetadata()
    return ExtractedMetadata(title=html.unescape(match.group(1)).strip() or None)


def extract_metadata(item_type: str, path: Path) -> ExtractedMetadata:
    """Read ``path`` and extract metadata; the title always falls back to the stem."""
    fallback = path.stem
    try:
        if item_type == "pdf":
            result = read_pdf_metadata(path.read_bytes())
        elif item_type == "sgf":
            result = read_sgf_metadata(path.read_text(encoding="utf-8", errors="replace"))
        elif item_type == "html":
            result = read_html_metadata(path.read_text(encoding="utf-8", errors="replace"))
        else:
            return ExtractedMetadata(title=fallback)
    except OSError as exc:
        logger.warning("Could not read %s for metadata: %s", path, exc)
        return ExtractedMetadata(title=fallback)
    if not (result.title or "").strip():
        result.title = fallback
    return result

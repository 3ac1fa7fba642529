from __future__ import annotations

import re
from itertools import islice
from pathlib import Path
from typing import Optional

# sanitize_filename() falls back to "upload" when nothing usable is left
GENERIC_STEMS = {"upload", "untitled", "document", "file"}

_LEAD_RE = re.compile(r"^[#>*\-\s]+")
_TRAIL_RE = re.compile(r"[\-|:_]+$")
_SPACE_RE = re.compile(r"\s+")

MAX_TITLE = 120
SCAN_LINES = 40


def clean_title(line: str) -> str:
    """Strip markdown markers, bullets and trailing separators from a line."""
    s = _LEAD_RE.sub("", line.strip())
    s = _SPACE_RE.sub(" ", s).strip()
    return _TRAIL_RE.sub("", s).strip()


def title_from_filename(name: str | None) -> Optional[str]:
    if not name:
        return None
    stem = Path(name).stem.replace("_", " ").strip()
    if not stem or stem.lower() in GENERIC_STEMS:
        return None
    return stem


def extract_title_from_text(text: str | None) -> Optional[str]:
    if not text:
        return None
    lines = list(islice((ln for ln in text.splitlines() if ln.strip()), SCAN_LINES))
    if not lines:
        return None

    headings = [clean_title(ln) for ln in lines if ln.lstrip().startswith("#")]
    for cand in headings:
        if 4 <= len(cand) <= MAX_TITLE:
            return cand

    for ln in lines:
        cand = clean_title(ln)
        if 6 <= len(cand) <= MAX_TITLE:
            return cand
    return clean_title(lines[0])[:MAX_TITLE] or None


def best_title(name: str | None, text: str | None, explicit: str | None = None) -> Optional[str]:
    """Display title: caller-supplied, then the file name, then the text itself."""
    if explicit and explicit.strip():
        return explicit.strip()
    return title_from_filename(name) or extract_title_from_text(text)

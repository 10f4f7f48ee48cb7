"""Text cleanup applied to scraped documents before they are sent for reranking."""
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List

_INLINE_SPACE = re.compile(r"[ \t\f\v]+")
# zero-width and BOM characters left behind by HTML and PDF text layers
_INVISIBLE = re.compile("[\u200b\u200c\u200d\u2060\ufeff]")
MIN_DOC_CHARS = 1000


def _clean_lines(lines: Iterable[str]) -> List[str]:
    out: List[str] = []
    for ln in lines:
        ln = _INVISIBLE.sub("", unicodedata.normalize("NFKC", ln))
        ln = _INLINE_SPACE.sub(" ", ln).strip()
        if ln:
            out.append(ln)
    return out


def normalize_document(text: str, max_chars: int) -> str:
    """Collapse whitespace per line, drop blank lines and cap the length.

    The cap never goes below MIN_DOC_CHARS and cuts at the last newline
    before the limit when there is one.
    """
    body = "\n".join(_clean_lines((text or "").splitlines()))
    limit = max(MIN_DOC_CHARS, int(max_chars))
    if len(body) <= limit:
        return body
    cut = body.rfind("\n", 0, limit)
    return body[:cut] if cut != -1 else body[:limit]

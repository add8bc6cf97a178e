"""
eventnexus.ingestion.normalization.text

Small pure text helpers shared by extraction and normalization.
"""

from __future__ import annotations

import re
from typing import Any, Optional

_WS = re.compile(r"\s+")


def normalize_ws(text: str) -> str:
    return _WS.sub(" ", (text or "").strip())


def strip_or_none(x: Any) -> Optional[str]:
    if x is None:
        return None
    s = normalize_ws(str(x))
    return s if s else None


def within(text: str | None, min_len: int, max_len: int) -> bool:
    """True when ``text`` is non-empty and its length is within bounds."""
    return bool(text) and min_len <= len(text) <= max_len

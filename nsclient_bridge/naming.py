from __future__ import annotations

import unicodedata

# Punctuation the host store accepts in ids, letters and decimal digits aside.
ALLOWED_PUNCTUATION = frozenset("._-/ :!#$%&()+=@^{}|~")


def _is_allowed(char: str) -> bool:
    if char in ALLOWED_PUNCTUATION:
        return True
    return unicodedata.category(char) in ("Ll", "Lu", "Nd")


def name_to_id(name: str | None) -> str:
    """Convert a free-form name into a store id.

    Runs of forbidden characters become a single ``_``, ``%`` becomes
    ``pct`` and every hyphen or whitespace character becomes ``_``. Dots
    are kept, so a dotted name still maps to nested ids.
    """
    if not name:
        return ""
    chars: list[str] = []
    in_forbidden = False
    for char in name:
        if _is_allowed(char):
            chars.append(char)
            in_forbidden = False
        elif not in_forbidden:
            chars.append("_")
            in_forbidden = True
    result = "".join(chars).replace("%", "pct")
    return "".join("_" if c == "-" or c.isspace() else c for c in result)


def segment_id(name: str | None) -> str:
    """Normalize a single path segment, dots and slashes included."""
    return name_to_id(name).replace(".", "_").replace("/", "_")


def join_id(*segments: str) -> str:
    return ".".join(segment for segment in segments if segment)

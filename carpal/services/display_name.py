"""Display-name resolution.

Identity claims and user records carry a person's name under several keys.
Names are taken from an ordered list of extractors; the first value that is
non-blank and does not look like an email address wins.
"""
import re
from typing import Any, Callable, Mapping, Optional, Sequence

FALLBACK_DISPLAY_NAME = "مستخدم"

CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")

NameExtractor = Callable[[Mapping[str, Any]], Optional[str]]

def sanitize_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = CONTROL_CHARS.sub("", str(value)).strip()
    return text or None

def clean_name(value: Any) -> Optional[str]:
    text = sanitize_text(value)
    if not text or EMAIL_PATTERN.search(text):
        return None
    return text

def claim(key: str) -> NameExtractor:
    def extract(record: Mapping[str, Any]) -> Optional[str]:
        value = record.get(key)
        return value if isinstance(value, str) else None
    extract.__name__ = f"claim_{key}"
    return extract

def joined_name(record: Mapping[str, Any]) -> Optional[str]:
    parts = [sanitize_text(record.get("firstName")), sanitize_text(record.get("lastName"))]
    parts = [part for part in parts if part]
    return " ".join(parts) if parts else None

DISPLAY_NAME_EXTRACTORS: Sequence[NameExtractor] = (
    claim("displayName"),
    claim("fullName"),
    claim("name"),
    claim("username"),
    joined_name,
)

def resolve_display_name(
    *sources: Any,
    extractors: Sequence[NameExtractor] = DISPLAY_NAME_EXTRACTORS,
    fallback: Optional[str] = None,
) -> Optional[str]:
    """Return the first usable name across ``sources``, in priority order.

    A source may be a plain string or a mapping of claims; mappings are run
    through ``extractors`` in order. ``fallback`` is returned when nothing
    qualifies.
    """
    for source in sources:
        if source is None:
            continue
        if isinstance(source, Mapping):
            candidates = (extract(source) for extract in extractors)
        else:
            candidates = (source,)
        for candidate in candidates:
            name = clean_name(candidate)
            if name:
                return name
    return fallback

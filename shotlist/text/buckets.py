from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from shotlist.config import BucketSettings
from shotlist.models import TextBuckets, TextLine

_WHITESPACE = re.compile(r"\s+")
_TRAILING_REGION = re.compile(r",\s*[A-Z]{2}\b")

_BUCKET_ALIASES = {
    "titles": "titles",
    "title": "titles",
    "lowerthirds": "lower_thirds",
    "lowerthird": "lower_thirds",
    "lower_thirds": "lower_thirds",
    "lower-thirds": "lower_thirds",
    "locations": "locations",
    "location": "locations",
    "other": "other",
}


@dataclass(slots=True)
class BucketRules:
    """Ordered heuristics for assigning on-screen text to a bucket."""

    title_markers: list[str] = field(default_factory=lambda: ["PRESENTS", "A FILM"])
    title_min_length: int = 45
    region_codes: list[str] = field(
        default_factory=lambda: ["AZ", "CA", "NY", "TX", "FL", "WA", "OR", "NV", "UT", "CO", "IL", "MA", "NJ", "PA"]
    )
    lower_third_max_words: int = 4
    max_per_bucket: int = 50
    _region_pattern: re.Pattern[str] | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: BucketSettings) -> BucketRules:
        return cls(
            title_markers=list(settings.title_markers),
            title_min_length=settings.title_min_length,
            region_codes=list(settings.region_codes),
            lower_third_max_words=settings.lower_third_max_words,
            max_per_bucket=settings.max_per_bucket,
        )

    @property
    def region_pattern(self) -> re.Pattern[str]:
        if self._region_pattern is None:
            codes = "|".join(re.escape(code.upper()) for code in self.region_codes) or "(?!)"
            self._region_pattern = re.compile(rf"\b(?:{codes})\b")
        return self._region_pattern


def clean_line(raw: str) -> str:
    return _WHITESPACE.sub(" ", str(raw or "")).strip()


def classify_line(cleaned: str, rules: BucketRules | None = None) -> str:
    """Assign a cleaned line to a bucket; the first matching rule wins."""

    rules = rules or BucketRules()
    upper = cleaned.upper()

    if any(marker.upper() in upper for marker in rules.title_markers) or len(cleaned) > rules.title_min_length:
        return "titles"
    if rules.region_pattern.search(upper) or _TRAILING_REGION.search(upper):
        return "locations"
    if len(cleaned.split(" ")) <= rules.lower_third_max_words:
        return "lower_thirds"
    return "other"


def classify_lines(lines: Iterable[str], rules: BucketRules | None = None) -> list[TextLine]:
    rules = rules or BucketRules()
    classified: list[TextLine] = []
    for raw in lines:
        cleaned = clean_line(raw)
        if not cleaned:
            continue
        classified.append(TextLine(raw=raw, cleaned=cleaned, bucket=classify_line(cleaned, rules)))
    return classified


def bucket_text(lines: Iterable[str], rules: BucketRules | None = None) -> TextBuckets:
    """Pool lines into deduplicated, capped buckets in first-seen order."""

    rules = rules or BucketRules()
    buckets = TextBuckets()
    for line in classify_lines(lines, rules):
        members = buckets.get(line.bucket)
        if line.cleaned in members or len(members) >= rules.max_per_bucket:
            continue
        members.append(line.cleaned)
    return buckets


def normalize_bucket_name(name: str) -> str:
    key = name.strip().lower()
    if key not in _BUCKET_ALIASES:
        raise ValueError(f"Unknown text bucket: {name!r}. Expected one of: titles, lowerThirds, locations, other.")
    return _BUCKET_ALIASES[key]


def parse_bucket_names(raw: str | Iterable[str] | None) -> list[str] | None:
    """Parse ``"titles,lowerThirds"`` style input into canonical bucket names."""

    if raw is None:
        return None
    parts = raw.split(",") if isinstance(raw, str) else list(raw)
    names = [part.strip() for part in parts if part and part.strip()]
    if not names:
        return None

    resolved: list[str] = []
    for name in names:
        canonical = normalize_bucket_name(name)
        if canonical not in resolved:
            resolved.append(canonical)
    return resolved

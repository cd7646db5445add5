"""Turns the free-text critique returned by the AI model into a StructuredCritique.

The critique is scanned once, line by line. Every line is tagged as a metric
line ("Completeness: 72/100"), a section header ("Strengths:") or plain
content, and the tagged lines are then reduced into the output record.
"""
import logging
import math
import random
import regex as re
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, TypeVar, Union

from .schemas import ImprovementSuggestion, ImprovementSuggestions, SkillsMatch, StructuredCritique

logger = logging.getLogger('critique_parser')

T = TypeVar('T')

MAX_LIST_ITEMS = 5
DEFAULT_TIER_CAPS = (3, 2, 2)
DEFAULT_FALLBACK_RANGE = (50, 79)
TITLE_FALLBACK_LENGTH = 30

# Metric name -> label pattern, in output order
METRIC_LABELS: Dict[str, str] = {
    'completeness': r'completeness',
    'technical': r'technical[\s_-]*skills?',
    'soft': r'soft[\s_-]*skills?',
    'keywords': r'key[\s_-]*words?',
    'ats': r'ats',
}

SECTION_KEYWORDS = r'(?P<kw>strengths?|weakness(?:es)?|suggestions?)'

_SCORE_QUALIFIERS = r'(?:(?:score|match|rating|compatibility|skills?)\b[\s:=\-–*_()]*)*'
_SCORE_VALUE = r'(?P<value>[0-9]+)\b(?:\s*(?:/\s*100|%|out of 100|points?))?[\s.*_)]*$'

# A dedicated score line: label, optional qualifier words, the number and an optional "/100"
_METRIC_LINE = {
    name: re.compile(rf'^{label}\b[\s:=\-–*_()]*{_SCORE_QUALIFIERS}{_SCORE_VALUE}', re.IGNORECASE)
    for name, label in METRIC_LABELS.items()
}

# "**Completeness Score**" with the number on the following line
_METRIC_LABEL_ONLY = {
    name: re.compile(rf'^{label}\b[\s:=\-–*_()]*{_SCORE_QUALIFIERS}$', re.IGNORECASE)
    for name, label in METRIC_LABELS.items()
}

_BARE_SCORE = re.compile(rf'^{_SCORE_VALUE}', re.IGNORECASE)

# Label mentioned anywhere in a line, followed later on the same line by a number
_METRIC_INLINE = {
    name: re.compile(rf'\b{label}\b[^0-9\n]*(?P<value>[0-9]+)', re.IGNORECASE)
    for name, label in METRIC_LABELS.items()
}

# "Strengths: Great formatting" - header carrying its first item
_HEADER_INLINE = re.compile(rf'^{SECTION_KEYWORDS}\s*[:\-–]\s*(?P<rest>\S.*)$', re.IGNORECASE)

# "Key Strengths", "## Weaknesses", "Suggestions for improvement:"
_HEADER_PREFIXES = r'(?:key|main|top|major|notable|core|additional|overall|improvement|your|areas?\s+of)'
_HEADER_PHRASE = re.compile(
    rf'^(?:{_HEADER_PREFIXES}\s+){{0,2}}{SECTION_KEYWORDS}(?:[\s/&-]+[a-z&-]+){{0,4}}\s*:?$',
    re.IGNORECASE
)

_LIST_MARKER = re.compile(r'^(?:[-*–]\s+|•\s*|\d+[.)](?!\d)\s*)')
# Bullets, or an enumeration such as " 2. " in the middle of a line
_FRAGMENT_SPLIT = re.compile(r'•|\s+(?=\d+[.)]\s)')


class ParseFailure(TypeError):
    """Raised when the critique handed to the parser is not decodable text."""
    pass


class LineTag(str, Enum):
    METRIC = 'metric'
    HEADER = 'header'
    CONTENT = 'content'


class ScannedLine(NamedTuple):
    tag: LineTag
    text: str
    section: Optional[str] = None
    metric: Optional[str] = None
    value: Optional[int] = None


def _section_name(keyword: str) -> str:
    keyword = keyword.lower()
    if keyword.startswith('strength'):
        return 'strengths'
    if keyword.startswith('weakness'):
        return 'weaknesses'
    return 'suggestions'


def _strip_decoration(text: str) -> str:
    """Drop markdown emphasis and heading marks around a line."""
    text = text.replace('**', '').replace('__', '')
    return text.strip().strip('#*_|>').strip()


def _is_list_item(text: str) -> bool:
    return bool(_LIST_MARKER.match(text))


def _plain(stripped: str) -> str:
    """Line text without its list marker and markdown decoration."""
    return _strip_decoration(_LIST_MARKER.sub('', stripped, count=1))


def _classify(raw_line: str) -> Optional[ScannedLine]:
    stripped = raw_line.strip()
    if not stripped:
        return None

    plain = _plain(stripped)
    for metric, pattern in _METRIC_LINE.items():
        match = pattern.match(plain)
        if match:
            return ScannedLine(LineTag.METRIC, stripped, metric=metric, value=int(match.group('value')))

    is_list_item = _is_list_item(stripped)
    if not is_list_item:
        match = _HEADER_INLINE.match(plain)
        if match:
            return ScannedLine(LineTag.HEADER, match.group('rest'), section=_section_name(match.group('kw')))

    match = _HEADER_PHRASE.match(plain)
    if match:
        body = _LIST_MARKER.sub('', stripped, count=1)
        if is_list_item:
            # "1. **Strengths:**" opens a section, "1. Highlight strengths" is an item
            is_header = plain.endswith(':') or body.startswith(('**', '__'))
        else:
            # Multi-word phrases need a colon or markdown heading to count as a header
            is_header = (
                plain.endswith(':')
                or stripped.startswith(('#', '**', '__'))
                or plain.lower() == match.group('kw').lower()
            )
        if is_header:
            return ScannedLine(LineTag.HEADER, '', section=_section_name(match.group('kw')))

    return ScannedLine(LineTag.CONTENT, stripped)


def _join_split_metric(label_line: str, value_line: str) -> Optional[ScannedLine]:
    """A label-only line followed by a bare score reads as one metric line."""
    value = _BARE_SCORE.match(_plain(value_line.strip()))
    if not value:
        return None
    label = _plain(label_line.strip())
    for metric, pattern in _METRIC_LABEL_ONLY.items():
        if pattern.match(label):
            text = f"{label_line.strip()} {value_line.strip()}"
            return ScannedLine(LineTag.METRIC, text, metric=metric, value=int(value.group('value')))
    return None


def scan_lines(text: str) -> List[ScannedLine]:
    """Tag every non-blank line of the critique, preserving order."""
    raw_lines = [line for line in text.splitlines() if line.strip()]
    scanned = []
    index = 0
    while index < len(raw_lines):
        line = _classify(raw_lines[index])
        if line.tag is LineTag.CONTENT and index + 1 < len(raw_lines):
            joined = _join_split_metric(raw_lines[index], raw_lines[index + 1])
            if joined is not None:
                scanned.append(joined)
                index += 2
                continue
        scanned.append(line)
        index += 1
    return scanned


def split_fragments(text: str) -> List[str]:
    """Split one content line into list items on bullets and enumerations."""
    fragments = []
    for piece in _FRAGMENT_SPLIT.split(text):
        piece = _LIST_MARKER.sub('', piece.strip(), count=1)
        piece = piece.replace('**', '').strip()
        if piece:
            fragments.append(piece)
    return fragments


def split_priority_tiers(
    items: Sequence[T],
    caps: Tuple[int, int, int] = DEFAULT_TIER_CAPS
) -> Tuple[List[T], List[T], List[T]]:
    """
    Partition an ordered list into high/medium/low priority tiers.

    High takes ceil(n/3) items, medium floor(n/3), low whatever is left, each
    bounded by its cap. Tiers are consecutive slices; items past the last
    tier are dropped.

    Args:
        items: Suggestions in source order
        caps: Maximum size of the high, medium and low tiers

    Returns:
        Tuple of (high, medium, low) lists
    """
    total = len(items)
    high_cap, medium_cap, low_cap = caps
    high_count = min(high_cap, math.ceil(total / 3))
    medium_count = min(medium_cap, total // 3)
    low_count = max(0, min(low_cap, total - high_count - medium_count))

    medium_end = high_count + medium_count
    return (
        list(items[:high_count]),
        list(items[high_count:medium_end]),
        list(items[medium_end:medium_end + low_count]),
    )


def to_suggestion(line: str) -> ImprovementSuggestion:
    """Split a suggestion at its first colon into title and description."""
    title, separator, description = line.partition(':')
    short_title = line[:TITLE_FALLBACK_LENGTH].strip()
    if not separator:
        return ImprovementSuggestion(title=short_title, description=line)
    return ImprovementSuggestion(
        title=title.strip() or short_title,
        description=description.strip() or line
    )


def coerce_text(raw_text: Union[str, bytes, bytearray]) -> str:
    """Accept str or UTF-8 bytes; anything else is an integration error upstream."""
    if isinstance(raw_text, str):
        return raw_text
    if isinstance(raw_text, (bytes, bytearray)):
        try:
            return bytes(raw_text).decode('utf-8')
        except UnicodeDecodeError as e:
            logger.error(f"Critique bytes are not valid UTF-8: {str(e)}")
            raise ParseFailure("Critique is not decodable text") from e
    logger.error(f"Invalid critique type: {type(raw_text)}")
    raise ParseFailure(f"Critique must be text, got {type(raw_text).__name__}")


class CritiqueParser:
    """Stateless converter from raw critique text to StructuredCritique."""

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clamp_scores: bool = False,
        fallback_range: Tuple[int, int] = DEFAULT_FALLBACK_RANGE,
        tier_caps: Tuple[int, int, int] = DEFAULT_TIER_CAPS
    ):
        """
        Args:
            rng: Source for fallback scores. A fresh generator is created per call when omitted
            clamp_scores: Clamp parsed scores into [0, 100]. Off by default, values pass through as written
            fallback_range: Inclusive bounds of the placeholder score
            tier_caps: Sizes of the high, medium and low suggestion tiers
        """
        low, high = fallback_range
        if low > high:
            raise ValueError(f"Invalid fallback range: {fallback_range}")
        self.rng = rng
        self.clamp_scores = clamp_scores
        self.fallback_range = (low, high)
        self.tier_caps = tuple(tier_caps)

    @classmethod
    def from_settings(cls, settings, rng: Optional[random.Random] = None) -> 'CritiqueParser':
        """Build a parser from ParserSettings."""
        return cls(
            rng=rng,
            clamp_scores=settings.clamp_scores,
            fallback_range=(settings.fallback_score_min, settings.fallback_score_max),
            tier_caps=tuple(settings.tier_caps)
        )

    def parse(self, raw_text: Union[str, bytes]) -> StructuredCritique:
        """
        Parse an AI critique into scores, strengths, weaknesses and tiered suggestions.

        Never fails on malformed or partial text: missing scores fall back to a
        placeholder and missing sections come back empty.

        Raises:
            ParseFailure: If raw_text is not str or UTF-8 bytes
        """
        text = coerce_text(raw_text)
        lines = scan_lines(text)
        rng = self.rng or random.Random()

        scores, fallback_metrics = self._extract_scores(lines, rng)
        sections = self._collect_sections(lines)

        high, medium, low = split_priority_tiers(sections['suggestions'], self.tier_caps)

        return StructuredCritique(
            completeness_score=scores['completeness'],
            skills_match=SkillsMatch(
                technical=scores['technical'],
                soft=scores['soft'],
                keywords=scores['keywords']
            ),
            ats_score=scores['ats'],
            strengths=tuple(sections['strengths'][:MAX_LIST_ITEMS]),
            weaknesses=tuple(sections['weaknesses'][:MAX_LIST_ITEMS]),
            improvement_suggestions=ImprovementSuggestions(
                high_priority=tuple(to_suggestion(line) for line in high),
                medium_priority=tuple(to_suggestion(line) for line in medium),
                low_priority=tuple(to_suggestion(line) for line in low)
            ),
            fallback_metrics=tuple(fallback_metrics)
        )

    def _extract_scores(self, lines: List[ScannedLine], rng: random.Random) -> Tuple[Dict[str, int], List[str]]:
        """Dedicated metric lines win; otherwise the first inline mention; otherwise a fallback."""
        dedicated: Dict[str, int] = {}
        inline: Dict[str, int] = {}

        for line in lines:
            if line.tag is LineTag.METRIC and line.metric not in dedicated:
                dedicated[line.metric] = line.value
            for metric, pattern in _METRIC_INLINE.items():
                if metric in inline:
                    continue
                match = pattern.search(line.text)
                if match:
                    inline[metric] = int(match.group('value'))

        scores = {}
        fallback_metrics = []
        for metric in METRIC_LABELS:
            score = dedicated.get(metric, inline.get(metric))
            if score is None:
                score = rng.randint(*self.fallback_range)
                fallback_metrics.append(metric)
                logger.info(f"Score for '{metric}' not found in critique, using fallback {score}")
            elif self.clamp_scores:
                score = min(100, max(0, score))
            scores[metric] = score

        return scores, fallback_metrics

    def _collect_sections(self, lines: List[ScannedLine]) -> Dict[str, List[str]]:
        sections: Dict[str, List[str]] = {'strengths': [], 'weaknesses': [], 'suggestions': []}
        current = None  # text before the first header belongs to no section

        for line in lines:
            if line.tag is LineTag.HEADER:
                # A repeated header reopens its section and keeps appending
                current = line.section
                if line.text:
                    sections[current].extend(split_fragments(line.text))
            elif line.tag is LineTag.CONTENT and current:
                sections[current].extend(split_fragments(line.text))

        logger.debug(
            f"Parsed sections: {len(sections['strengths'])} strengths, "
            f"{len(sections['weaknesses'])} weaknesses, {len(sections['suggestions'])} suggestions"
        )
        return sections


def parse(
    raw_text: Union[str, bytes],
    rng: Optional[random.Random] = None,
    clamp_scores: bool = False
) -> StructuredCritique:
    """Parse a critique with the default fallback range and tier caps."""
    return CritiqueParser(rng=rng, clamp_scores=clamp_scores).parse(raw_text)

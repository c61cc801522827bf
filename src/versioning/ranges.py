"""npm range arithmetic: parse ranges into version intervals, intersect, merge.

Ranges are modelled as unions of half-open/closed intervals over
``semantic_version.Version``. Supported syntax: exact versions, ``=``,
comparators (``>``, ``>=``, ``<``, ``<=``), caret, tilde, x-ranges, hyphen
ranges and ``||`` unions. Anything else (dist-tags, URLs, ``workspace:``)
raises ``UnsupportedRange``.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import semantic_version

ZERO = semantic_version.Version("0.0.0")
ANY_TOKENS = {"", "*", "x", "X", "latest"}

_PARTIAL_RE = re.compile(
    r'^v?(?P<major>\d+|[xX*])'
    r'(?:\.(?P<minor>\d+|[xX*]))?'
    r'(?:\.(?P<patch>\d+|[xX*]))?'
    r'(?:-(?P<pre>[0-9A-Za-z.-]+))?'
    r'(?:\+[0-9A-Za-z.-]+)?$'
)
_HYPHEN_RE = re.compile(r'^\s*(\S+)\s+-\s+(\S+)\s*$')
_OPERATOR_SPACE_RE = re.compile(r'(<=|>=|<|>|=|\^|~>?)\s+')
_COMPARATOR_RE = re.compile(r'^(<=|>=|<|>|=|\^|~>?)?(.+)$')


class UnsupportedRange(ValueError):
    """Raised for version specs that are not npm semver ranges."""


Partial = Tuple[Optional[int], Optional[int], Optional[int], Optional[str]]


def _version(major: int, minor: int = 0, patch: int = 0, pre: Optional[str] = None) -> semantic_version.Version:
    text = f"{major}.{minor}.{patch}"
    if pre:
        text = f"{text}-{pre}"
    return semantic_version.Version(text)


def _parse_partial(text: str) -> Partial:
    m = _PARTIAL_RE.match(text.strip())
    if not m:
        raise UnsupportedRange(f"Invalid version in range: {text!r}")

    def num(group: str) -> Optional[int]:
        val = m.group(group)
        if val is None or val in ("x", "X", "*"):
            return None
        return int(val)

    major, minor, patch = num("major"), num("minor"), num("patch")
    # "1.x.3" style: everything after a wildcard is a wildcard
    if major is None:
        minor = patch = None
    elif minor is None:
        patch = None
    pre = m.group("pre") if patch is not None else None
    return major, minor, patch, pre


@dataclass(frozen=True)
class Interval:
    """A contiguous version interval; ``upper`` None means unbounded."""

    lower: semantic_version.Version = ZERO
    lower_inclusive: bool = True
    upper: Optional[semantic_version.Version] = None
    upper_inclusive: bool = False

    def is_empty(self) -> bool:
        if self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        if self.lower == self.upper:
            return not (self.lower_inclusive and self.upper_inclusive)
        return False

    def intersect(self, other: "Interval") -> "Interval":
        if self.lower > other.lower:
            lower, lower_inc = self.lower, self.lower_inclusive
        elif other.lower > self.lower:
            lower, lower_inc = other.lower, other.lower_inclusive
        else:
            lower, lower_inc = self.lower, self.lower_inclusive and other.lower_inclusive

        if self.upper is None:
            upper, upper_inc = other.upper, other.upper_inclusive
        elif other.upper is None or self.upper < other.upper:
            upper, upper_inc = self.upper, self.upper_inclusive
        elif other.upper < self.upper:
            upper, upper_inc = other.upper, other.upper_inclusive
        else:
            upper, upper_inc = self.upper, self.upper_inclusive and other.upper_inclusive
        return Interval(lower, lower_inc, upper, upper_inc)

    def render(self) -> str:
        if self.upper is not None and self.lower == self.upper:
            return str(self.lower)
        parts = []
        if not (self.lower == ZERO and self.lower_inclusive):
            parts.append(f"{'>=' if self.lower_inclusive else '>'}{self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper_inclusive else '<'}{self.upper}")
        return " ".join(parts) or "*"


ANY = Interval()
EMPTY = Interval(_version(1), False, _version(1), False)


def _comparator(op: str, text: str) -> Interval:
    """Translate one npm comparator into an interval."""
    major, minor, patch, pre = _parse_partial(text)
    if major is None:
        # "*", ">=*", "^x" ... match anything; "<*" and ">*" match nothing
        return EMPTY if op in ("<", ">") else ANY

    base = _version(major, minor or 0, patch or 0, pre)
    if minor is None:
        next_up = _version(major + 1)
    elif patch is None:
        next_up = _version(major, minor + 1)
    else:
        next_up = None

    if op in ("", "="):
        if next_up is None:
            return Interval(base, True, base, True)
        return Interval(base, True, next_up, False)
    if op == "^":
        if major > 0 or minor is None:
            upper = _version(major + 1)
        elif minor > 0 or patch is None:
            upper = _version(0, minor + 1)
        else:
            upper = _version(0, 0, patch + 1)
        return Interval(base, True, upper, False)
    if op in ("~", "~>"):
        upper = _version(major + 1) if minor is None else _version(major, minor + 1)
        return Interval(base, True, upper, False)
    if op == ">":
        if next_up is None:
            return Interval(base, False, None, False)
        return Interval(next_up, True, None, False)
    if op == ">=":
        return Interval(base, True, None, False)
    if op == "<":
        return Interval(ZERO, True, base, False)
    if op == "<=":
        if next_up is None:
            return Interval(ZERO, True, base, True)
        return Interval(ZERO, True, next_up, False)
    raise UnsupportedRange(f"Unknown operator {op!r}")


def _parse_alternative(text: str) -> Interval:
    text = text.strip()
    if text in ANY_TOKENS:
        return ANY

    m = _HYPHEN_RE.match(text)
    if m:
        low = _comparator(">=", m.group(1))
        high = _comparator("<=", m.group(2))
        return low.intersect(high)

    result = ANY
    for token in _OPERATOR_SPACE_RE.sub(r'\1', text).split():
        cm = _COMPARATOR_RE.match(token)
        if not cm:
            raise UnsupportedRange(f"Invalid comparator: {token!r}")
        result = result.intersect(_comparator(cm.group(1) or "", cm.group(2)))
    return result


def normalize(intervals: List[Interval]) -> List[Interval]:
    """Drop empty intervals, sort, and merge overlapping/adjacent ones."""
    items = sorted(
        (i for i in intervals if not i.is_empty()),
        key=lambda i: (i.lower, not i.lower_inclusive),
    )
    merged: List[Interval] = []
    for item in items:
        if not merged:
            merged.append(item)
            continue
        last = merged[-1]
        touches = (
            last.upper is None
            or item.lower < last.upper
            or (item.lower == last.upper and (item.lower_inclusive or last.upper_inclusive))
        )
        if not touches:
            merged.append(item)
            continue
        if last.upper is None or item.upper is None:
            upper, upper_inc = None, False
        elif item.upper > last.upper:
            upper, upper_inc = item.upper, item.upper_inclusive
        elif item.upper < last.upper:
            upper, upper_inc = last.upper, last.upper_inclusive
        else:
            upper, upper_inc = last.upper, last.upper_inclusive or item.upper_inclusive
        merged[-1] = Interval(last.lower, last.lower_inclusive, upper, upper_inc)
    return merged


def parse_range(spec: str) -> List[Interval]:
    """Parse an npm range into its normalized interval union."""
    if spec is None:
        raise UnsupportedRange("Missing range")
    spec = str(spec).strip()
    if spec.startswith(("workspace:", "npm:", "file:", "link:", "git", "http:", "https:")) or "/" in spec:
        raise UnsupportedRange(f"Not a semver range: {spec!r}")
    return normalize([_parse_alternative(alt) for alt in spec.split("||")])


def intersect(a: List[Interval], b: List[Interval]) -> List[Interval]:
    """Intersection of two interval unions."""
    return normalize([x.intersect(y) for x in a for y in b])


def render(intervals: List[Interval]) -> str:
    """Render an interval union back into npm range syntax."""
    if not intervals:
        return "<0.0.0"
    return " || ".join(i.render() for i in intervals)


def is_any(spec: str) -> bool:
    """True for specs that accept every version."""
    return str(spec).strip() in ANY_TOKENS


def merge_ranges(first: str, second: str) -> Optional[str]:
    """Merge two npm ranges.

    Returns the narrower original text when one range contains the other
    (the first on a tie), the rendered intersection when they only
    overlap, and None when they are disjoint.
    """
    a = parse_range(first)
    b = parse_range(second)
    both = intersect(a, b)
    if not both:
        return None
    if both == a:
        return first
    if both == b:
        return second
    return render(both)


def satisfies(version: str, spec: str) -> bool:
    """Check a concrete version against an npm range using NpmSpec."""
    try:
        return semantic_version.NpmSpec(spec).match(semantic_version.Version(version))
    except ValueError:
        return False

"""
PEP 440-like version ordering and specifier matching.

Implements the subset of PEP 440 needed to pick the newest published version
matching a declared specifier: release segments, dev/alpha/beta/rc/post
qualifiers, comparison operators and the compatible-release operator.
Local version labels and epochs are not supported.
"""

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Literal, Optional, Sequence, Tuple

OPERATORS = ("==", "!=", ">=", "<=", "~=", ">", "<")
# Two-character operators first so ">=" is never read as ">" + "=1.0"
CONSTRAINT_PATTERN = re.compile(r"^(==|!=|>=|<=|~=|>|<)\s*(.+)$")

PRERELEASE_MARKERS = ("a", "alpha", "b", "beta", "rc", "dev", "pre", "post")

_LEADING_DIGITS = re.compile(r"^\d+")
_POST_PATTERN = re.compile(r"post\.?(\d*)")
_DEV_PATTERN = re.compile(r"dev\.?(\d*)")
# A qualifier must follow the start, a digit or a separator so that letters
# inside unrelated words are not taken for one
_ALPHA_PATTERN = re.compile(r"(?:^|[\d._-])(?:alpha|a)\.?(\d*)")
_BETA_PATTERN = re.compile(r"(?:^|[\d._-])(?:beta|b)\.?(\d*)")
_RC_PATTERN = re.compile(r"(?:^|[\d._-])(?:rc|pre|c)\.?(\d*)")


class ReleaseClass(IntEnum):
    """Release qualifiers in ascending order."""

    DEV = 0
    ALPHA = 1
    BETA = 2
    RC = 3
    FINAL = 4
    POST = 5


@dataclass(frozen=True)
class VersionConstraint:
    """One ``<operator><version>`` clause of a specifier."""

    operator: str
    version: str

    def __str__(self) -> str:
        return f"{self.operator}{self.version}"


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of picking the best version from a candidate list."""

    found: bool
    version: Optional[str] = None
    reason: Optional[Literal["no-compatible-version"]] = None


@dataclass(frozen=True)
class VersionAnalysis:
    """How risky it is to move from one version to another."""

    current_version: str
    latest_version: str
    update_type: Literal["patch", "minor", "major"]
    risk_level: Literal["low", "medium", "high"]
    is_breaking_change: bool


def _numeric_segments(version: str) -> List[int]:
    """Release segments as written, before padding."""
    release = re.sub(r"[a-zA-Z].*", "", version)
    segments = []
    for part in release.split("."):
        match = _LEADING_DIGITS.match(part.strip())
        segments.append(int(match.group(0)) if match else 0)
    return segments


def parse_version(version: str) -> Tuple[int, ...]:
    """
    Parse the numeric release part of a version.

    Everything from the first letter onward is ignored; qualifiers are ordered
    separately by :func:`classify_prerelease`. The result has at least three
    segments.

    >>> parse_version("1.2")
    (1, 2, 0)
    >>> parse_version("2.0.0rc1")
    (2, 0, 0)
    """
    segments = _numeric_segments(version)
    while len(segments) < 3:
        segments.append(0)
    return tuple(segments)


def classify_prerelease(version: str) -> Tuple[ReleaseClass, int]:
    """
    Classify the release qualifier of a version and extract its number.

    ``post`` wins over everything, then ``dev``, alpha, beta and the rc family
    (``rc``, ``pre``, ``c``). Versions without a qualifier are final.

    Returns:
        (release class, qualifier number); the number is 0 when absent
    """
    lower = version.lower()

    for release_class, pattern in (
        (ReleaseClass.POST, _POST_PATTERN),
        (ReleaseClass.DEV, _DEV_PATTERN),
        (ReleaseClass.ALPHA, _ALPHA_PATTERN),
        (ReleaseClass.BETA, _BETA_PATTERN),
        (ReleaseClass.RC, _RC_PATTERN),
    ):
        match = pattern.search(lower)
        if match:
            number = match.group(1)
            return release_class, int(number) if number else 0

    return ReleaseClass.FINAL, 0


def version_sort_key(version: str) -> Tuple[Tuple[int, ...], int, int]:
    """Sort key consistent with :func:`compare_versions`."""
    segments = list(parse_version(version))
    # Trailing zeros do not change the order: 1.0 == 1.0.0
    while segments and segments[-1] == 0:
        segments.pop()
    release_class, number = classify_prerelease(version)
    return tuple(segments), int(release_class), number


def compare_versions(a: str, b: str) -> int:
    """
    Compare two versions.

    Release segments decide first (missing segments count as 0); equal
    releases are ordered dev < alpha < beta < rc < final < post, then by
    qualifier number.

    Returns:
        -1 if a < b, 0 if they are equal, 1 if a > b
    """
    key_a = version_sort_key(a)
    key_b = version_sort_key(b)
    if key_a < key_b:
        return -1
    if key_a > key_b:
        return 1
    return 0


def is_prerelease(version: str) -> bool:
    """
    Coarse check for a non-final version.

    This is a substring test against the known qualifier markers and can
    misfire on versions that contain those letters for other reasons.
    """
    lower = version.lower()
    return any(marker in lower for marker in PRERELEASE_MARKERS)


def parse_specifier(specifier: str) -> List[VersionConstraint]:
    """
    Parse a comma-separated specifier into constraints.

    Clauses that are not ``<operator><version>`` are dropped.

    >>> parse_specifier(">=1.0, <2.0")
    [VersionConstraint(operator='>=', version='1.0'), VersionConstraint(operator='<', version='2.0')]
    """
    if not specifier or not specifier.strip():
        return []

    constraints = []
    for clause in specifier.split(","):
        clause = clause.strip()
        if not clause:
            continue
        match = CONSTRAINT_PATTERN.match(clause)
        if match:
            constraints.append(VersionConstraint(match.group(1), match.group(2).strip()))
    return constraints


def _matches_wildcard(version: str, pattern: str) -> bool:
    prefix = _numeric_segments(pattern[:-2])
    candidate = list(parse_version(version))
    candidate.extend([0] * (len(prefix) - len(candidate)))
    return candidate[: len(prefix)] == prefix


def _satisfies_compatible(version: str, constraint_version: str) -> bool:
    if compare_versions(version, constraint_version) < 0:
        return False

    # ~=1.4.2 locks 1.4, ~=2.1 locks 2
    locked = _numeric_segments(constraint_version)[:-1]
    candidate = list(parse_version(version))
    candidate.extend([0] * (len(locked) - len(candidate)))
    return candidate[: len(locked)] == locked


def satisfies_constraint(version: str, constraint: VersionConstraint) -> bool:
    """Check a version against a single constraint."""
    operator = constraint.operator

    if operator == "~=":
        return _satisfies_compatible(version, constraint.version)

    if operator in ("==", "!=") and constraint.version.endswith(".*"):
        matched = _matches_wildcard(version, constraint.version)
        return matched if operator == "==" else not matched

    cmp = compare_versions(version, constraint.version)
    if operator == "==":
        return cmp == 0
    if operator == "!=":
        return cmp != 0
    if operator == ">=":
        return cmp >= 0
    if operator == "<=":
        return cmp <= 0
    if operator == ">":
        return cmp > 0
    if operator == "<":
        return cmp < 0
    raise ValueError(f"Unknown version operator: {operator!r}")


def satisfies(version: str, constraints: Sequence[VersionConstraint]) -> bool:
    """Check a version against every constraint; no constraints always match."""
    return all(satisfies_constraint(version, constraint) for constraint in constraints)


def resolve(
    versions: Iterable[str], specifier: str, include_prerelease: bool = False
) -> ResolveResult:
    """
    Pick the highest version matching a specifier.

    Args:
        versions: Candidate versions, in any order
        specifier: Specifier string; empty means unconstrained
        include_prerelease: Whether pre-release versions may be picked

    Returns:
        ResolveResult with the chosen version, or reason
        ``no-compatible-version``
    """
    constraints = parse_specifier(specifier)

    candidates = [
        version
        for version in versions
        if (include_prerelease or not is_prerelease(version))
        and satisfies(version, constraints)
    ]

    if not candidates:
        return ResolveResult(found=False, reason="no-compatible-version")

    return ResolveResult(found=True, version=max(candidates, key=version_sort_key))


def _major_minor_patch(version: str) -> Tuple[int, int, int]:
    digits = re.sub(r"[^\d.]", "", version)
    parts = [int(part) if part else 0 for part in digits.split(".")]
    parts.extend([0, 0, 0])
    return parts[0], parts[1], parts[2]


def analyze_version_update(current: str, latest: str) -> VersionAnalysis:
    """
    Classify an update by which of major, minor or patch changed.

    A major change is high risk and considered breaking; a minor change is
    medium risk; anything else is a low-risk patch update.
    """
    current_parts = _major_minor_patch(current)
    latest_parts = _major_minor_patch(latest)

    if current_parts[0] != latest_parts[0]:
        return VersionAnalysis(current, latest, "major", "high", True)
    if current_parts[1] != latest_parts[1]:
        return VersionAnalysis(current, latest, "minor", "medium", False)
    return VersionAnalysis(current, latest, "patch", "low", False)

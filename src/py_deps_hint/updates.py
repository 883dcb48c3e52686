"""
Version-edit helpers and update planning.

Locates the version part of a manifest line, rewrites it to a new version
while keeping the declared operator, and splits a batch of candidate updates
into safe ones and risky (major) ones that need confirmation.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .dependency import Dependency
from .versioning import VersionAnalysis, analyze_version_update, compare_versions

TOML_VERSION_PATTERN = re.compile(r"([=<>!~\^]+)\s*([^\"',\s\]\}]+)")
REQUIREMENTS_VERSION_PATTERN = re.compile(r"([=<>!~\^]+)\s*([^\s#;]+)")
_LEADING_OPERATORS = re.compile(r"^[=<>!~\^]+")
# Clauses that name a version the package may move forward from
RETARGETABLE_OPERATORS = ("==", ">=", "~=")


@dataclass(frozen=True)
class VersionMatch:
    """Operator and version found in a manifest line."""

    full_match: str
    operator: str
    version: str
    start_index: int
    end_index: int


@dataclass(frozen=True)
class PlannedUpdate:
    """A dependency whose declared version can move to a newer one."""

    dependency: Dependency
    current_version: str
    new_version: str
    analysis: VersionAnalysis

    @property
    def is_risky(self) -> bool:
        return self.analysis.risk_level == "high"


@dataclass
class UpdatePlan:
    """Updates split by whether they need confirmation."""

    safe: List[PlannedUpdate] = field(default_factory=list)
    risky: List[PlannedUpdate] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.safe) + len(self.risky)


def extract_version_from_line(
    line: str, is_toml: bool, start: int = 0
) -> Optional[VersionMatch]:
    """
    Find the first operator and version in a line.

    Args:
        line: Manifest line text
        is_toml: Whether the line comes from a TOML document, where the
            version stops at quotes, commas and closing brackets
        start: Index to start searching from

    Returns:
        VersionMatch with indices into ``line``, or None
    """
    pattern = TOML_VERSION_PATTERN if is_toml else REQUIREMENTS_VERSION_PATTERN
    match = pattern.search(line, start)
    if not match:
        return None

    return VersionMatch(
        full_match=match.group(0),
        operator=match.group(1),
        version=match.group(2),
        start_index=match.start(),
        end_index=match.end(),
    )


def build_version_replacement(
    line: str,
    new_version: str,
    is_toml: bool,
    match: Optional[VersionMatch] = None,
) -> str:
    """Operator plus new version; the operator defaults to ``==``."""
    current = match or extract_version_from_line(line, is_toml)
    if current:
        return f"{current.operator}{new_version}"
    return f"=={new_version}"


def extract_version_number(specifier: str) -> str:
    """
    Strip leading operators and quotes from a specifier.

    >>> extract_version_number("==1.0.0")
    '1.0.0'
    """
    if not specifier:
        return ""
    clean = _LEADING_OPERATORS.sub("", specifier)
    clean = re.sub(r"[\"']", "", clean)
    return clean.strip()


def clean_specifier(specifier: str) -> str:
    """
    Reduce a declared specifier to its constraint clauses.

    Inline comments, environment markers and quotes are removed, e.g.
    ``>=2.0 ; python_version < "3.8"  # pinned`` becomes ``>=2.0``.
    """
    if not specifier:
        return ""
    clean = specifier.split("#", 1)[0]
    clean = clean.split(";", 1)[0]
    clean = re.sub(r"[\"']", "", clean)
    return clean.strip()


def _first_clause(dep: Dependency) -> str:
    return clean_specifier(dep.version_specifier).split(",", 1)[0].strip()


def current_version_of(dep: Dependency) -> str:
    """Version written in the first clause of a dependency's specifier."""
    return extract_version_number(_first_clause(dep))


def is_retargetable(dep: Dependency) -> bool:
    """Whether the first clause is a pin or lower bound that can be moved up."""
    clause = _first_clause(dep)
    match = _LEADING_OPERATORS.match(clause)
    if not match or clause.endswith("*"):
        return False
    return match.group(0) in RETARGETABLE_OPERATORS


def apply_version_update(
    content: str,
    line: int,
    new_version: str,
    is_toml: bool,
    start_column: int = 0,
) -> str:
    """
    Replace the version on one line of a document.

    Args:
        content: Full document text
        line: 0-based line number
        new_version: Version to write
        is_toml: Whether the document is TOML
        start_column: Where the dependency starts on the line, so that
            earlier ``=`` signs (TOML assignments) are not mistaken for
            operators

    Returns:
        Updated document text, unchanged if the line carries no version
    """
    lines = content.split("\n")
    if line < 0 or line >= len(lines):
        return content

    text = lines[line]
    match = extract_version_from_line(text, is_toml, start_column)
    if match is None:
        return content

    replacement = build_version_replacement(text, new_version, is_toml, match)
    lines[line] = text[: match.start_index] + replacement + text[match.end_index :]
    return "\n".join(lines)


def plan_updates(
    dependencies: Sequence[Dependency], new_versions: Sequence[Optional[str]]
) -> UpdatePlan:
    """
    Decide which dependencies to update.

    Only ``==``, ``>=`` and ``~=`` clauses are moved. Dependencies without such
    a clause, without a resolved new version, or whose declared version is
    not older than it are skipped, so an update never downgrades. Major
    updates are risky.

    Args:
        dependencies: Parsed dependencies
        new_versions: Resolved version for each dependency (None on error)

    Returns:
        UpdatePlan with safe and risky updates in input order
    """
    plan = UpdatePlan()

    for dep, new_version in zip(dependencies, new_versions):
        if not new_version or not is_retargetable(dep):
            continue

        current = current_version_of(dep)
        if not current or compare_versions(new_version, current) <= 0:
            continue

        update = PlannedUpdate(
            dependency=dep,
            current_version=current,
            new_version=new_version,
            analysis=analyze_version_update(current, new_version),
        )
        if update.is_risky:
            plan.risky.append(update)
        else:
            plan.safe.append(update)

    return plan


def apply_updates(content: str, updates: Iterable[PlannedUpdate], is_toml: bool) -> str:
    """Apply planned updates to a document."""
    # Right to left so edits never shift the columns of pending ones
    ordered = sorted(
        updates,
        key=lambda u: (u.dependency.line, u.dependency.start_column),
        reverse=True,
    )
    for update in ordered:
        content = apply_version_update(
            content,
            update.dependency.line,
            update.new_version,
            is_toml,
            update.dependency.start_column,
        )
    return content

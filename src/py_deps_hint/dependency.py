from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple, Union


class DependencySection(Enum):
    """Where a pyproject.toml dependency was declared."""

    MAIN = "main dependencies"
    OPTIONAL = "optional dependencies"


@dataclass(frozen=True)
class ParsedDependency:
    """A dependency declared on one line of a requirements-style file."""

    package_name: str
    version_specifier: str
    line: int
    start_column: int
    end_column: int
    kind: Literal["requirements"] = field(default="requirements", init=False)


@dataclass(frozen=True)
class ProjectManifestDependency:
    """A dependency declared in a pyproject.toml dependency array."""

    package_name: str
    version_specifier: str
    line: int
    start_column: int
    end_column: int
    section: DependencySection
    extra: Optional[str] = None
    path: Tuple[str, ...] = ()
    kind: Literal["pyproject"] = field(default="pyproject", init=False)

    def __post_init__(self):
        is_optional = self.section is DependencySection.OPTIONAL
        if is_optional != (self.extra is not None):
            raise ValueError(
                "extra must be set exactly when section is optional dependencies"
            )

    @property
    def is_optional(self) -> bool:
        return self.section is DependencySection.OPTIONAL


Dependency = Union[ParsedDependency, ProjectManifestDependency]


@dataclass(frozen=True)
class DependencyStats:
    """Dependency counts by section."""

    total: int
    main_dependencies: int
    optional_dependencies: int
    by_extra: Dict[str, int]


def get_dependency_stats(deps: Sequence[Dependency]) -> DependencyStats:
    """Count main and optional dependencies, and optional ones per extra."""
    main = 0
    optional = 0
    by_extra: Dict[str, int] = {}

    for dep in deps:
        if dep.kind == "pyproject" and dep.is_optional:
            optional += 1
            by_extra[dep.extra] = by_extra.get(dep.extra, 0) + 1
        else:
            # requirements.txt entries have no sections and count as main
            main += 1

    return DependencyStats(
        total=len(deps),
        main_dependencies=main,
        optional_dependencies=optional,
        by_extra=by_extra,
    )


def filter_dependencies(
    deps: Iterable[Dependency],
    include_main: bool = True,
    include_optional: bool = True,
    extras: Optional[Sequence[str]] = None,
) -> List[Dependency]:
    """
    Filter dependencies by section.

    Args:
        deps: Dependencies to filter
        include_main: Keep main (and requirements.txt) dependencies
        include_optional: Keep optional dependencies
        extras: If non-empty, only keep optional dependencies of these extras

    Returns:
        List of the dependencies that passed, in input order
    """
    allowed_extras = set(extras or [])
    result: List[Dependency] = []

    for dep in deps:
        if dep.kind == "pyproject" and dep.is_optional:
            if not include_optional:
                continue
            if allowed_extras and dep.extra not in allowed_extras:
                continue
            result.append(dep)
        elif include_main:
            result.append(dep)

    return result


def group_dependencies(deps: Iterable[Dependency]) -> Dict[str, object]:
    """Group dependencies into ``{"main": [...], "optional": {extra: [...]}}``."""
    main: List[Dependency] = []
    optional: Dict[str, List[Dependency]] = {}

    for dep in deps:
        if dep.kind == "pyproject" and dep.is_optional:
            optional.setdefault(dep.extra, []).append(dep)
        else:
            main.append(dep)

    return {"main": main, "optional": optional}

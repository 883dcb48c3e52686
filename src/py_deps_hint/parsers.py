"""
Dependency manifest parsers.

Extracts declared dependencies, with line and column anchors, from
requirements-style text files and from the dependency arrays of
pyproject.toml files. Parsing is best-effort: lines that cannot be understood
are skipped instead of failing the whole document.
"""

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath
from typing import List, Optional, Tuple

from .dependency import (
    Dependency,
    DependencySection,
    ParsedDependency,
    ProjectManifestDependency,
)
from .error_handling import log_parsing_error
from .structured_logging import log_manifest_parsed

# Name, optional [extras] (discarded), then everything else as the specifier
REQUIREMENT_PATTERN = re.compile(r"^([a-zA-Z0-9._-]+)(?:\[[^\]]*\])?\s*(.*)$")
# Inside pyproject arrays the name must start with an alphanumeric character
PYPROJECT_ITEM_PATTERN = re.compile(
    r"^([a-zA-Z0-9][a-zA-Z0-9._-]*)(?:\[[^\]]*\])?\s*(.*)$"
)
REMOTE_URL_PATTERN = re.compile(r"^(?:https?|git|svn|hg|bzr)(?:\+[a-z]+)?://", re.I)

SECTION_HEADER_PATTERN = re.compile(r"^\[\[?\s*([^\[\]]+?)\s*\]\]?\s*(?:#.*)?$")
ARRAY_ASSIGNMENT_PATTERN = re.compile(r"""^(["']?[A-Za-z0-9_.-]+["']?)\s*=\s*\[(.*)$""")

PROJECT_SECTION = "project"
OPTIONAL_DEPENDENCIES_SECTION = "project.optional-dependencies"
LEGACY_SECTIONS = {None, "tool.setuptools"}
LEGACY_KEYS = {"install_requires", "install-requires"}

PYPROJECT_INDICATORS = [
    "[project]",
    "[tool.",
    "[build-system]",
    "project.dependencies",
    "project.optional-dependencies",
]
REQUIREMENTS_NAME_PATTERN = re.compile(r"requirements.*\.txt$")
REQUIREMENTS_CONTENT_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+\s*[=<>!~]", re.M)


# --------------------------------------------------------------------------
# requirements.txt
# --------------------------------------------------------------------------


def _should_skip_requirement(trimmed: str) -> bool:
    if not trimmed or trimmed.startswith("#"):
        return True
    # -e, -r, -c, --index-url and every other pip option
    if trimmed.startswith("-"):
        return True
    if trimmed.startswith((".", "/")) or "file://" in trimmed:
        return True
    return bool(REMOTE_URL_PATTERN.match(trimmed))


def parse_requirement_line(line: str, line_number: int) -> Optional[ParsedDependency]:
    """
    Parse a single requirements.txt line.

    The version specifier is everything after the name and extras, kept
    verbatim: inline comments and environment markers are not removed here.

    Args:
        line: The untrimmed line text
        line_number: 0-based line index within the document

    Returns:
        ParsedDependency, or None if the line declares no registry package
    """
    trimmed = line.strip()
    if _should_skip_requirement(trimmed):
        return None

    match = REQUIREMENT_PATTERN.match(trimmed)
    if not match:
        return None

    package_name = match.group(1)
    return ParsedDependency(
        package_name=package_name,
        version_specifier=match.group(2).strip(),
        line=line_number,
        start_column=line.find(package_name),
        end_column=len(line),
    )


def parse_requirements_document(content: str) -> List[ParsedDependency]:
    """Parse every line of a requirements-style document, in line order."""
    dependencies = []
    for line_number, line in enumerate(content.split("\n")):
        parsed = parse_requirement_line(line, line_number)
        if parsed:
            dependencies.append(parsed)
    return dependencies


def format_requirement(dep: Dependency) -> str:
    """Format a dependency back to ``name<specifier>``."""
    if dep.version_specifier:
        return f"{dep.package_name}{dep.version_specifier}"
    return dep.package_name


# --------------------------------------------------------------------------
# pyproject.toml
# --------------------------------------------------------------------------


def _strip_comment(text: str) -> str:
    """Remove a trailing ``# comment`` that is not inside a quoted string."""
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "#":
            return text[:index]
    return text


def _split_items(text: str) -> List[str]:
    """Split array content on commas that are not inside quoted strings."""
    items = []
    current = []
    quote = None
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == ",":
            items.append("".join(current))
            current = []
            continue
        current.append(char)
    items.append("".join(current))
    return items


def _split_closing_bracket(text: str) -> Tuple[str, bool]:
    """
    Separate the array-closing ``]`` from the items on a line.

    Returns the item text and whether the array closes on this line. A ``]``
    that belongs to an extras list (``"pkg[extra]"``) is inside quotes and is
    not treated as closing.
    """
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "]":
            return text[:index], True
    return text, False


def _parse_pyproject_item(raw_item: str) -> Optional[Tuple[str, str]]:
    item = raw_item.strip().rstrip(",").strip()
    if len(item) >= 2 and item[0] == item[-1] and item[0] in "\"'":
        item = item[1:-1]
    item = item.strip().strip("\"'").strip()

    if not item or item.startswith("#") or item in ("[", "]", ","):
        return None

    match = PYPROJECT_ITEM_PATTERN.match(item)
    if not match:
        return None

    return match.group(1), match.group(2).strip()


class _PyProjectScanner:
    """Line-oriented scanner over the dependency arrays of a pyproject.toml."""

    def __init__(self, content: str):
        self.lines = content.split("\n")
        self.section: Optional[str] = None
        self.extra: Optional[str] = None
        self.in_array = False
        self.array_section: Optional[DependencySection] = None
        self.dependencies: List[ProjectManifestDependency] = []

    def scan(self) -> List[ProjectManifestDependency]:
        for line_number, line in enumerate(self.lines):
            if self.in_array:
                self._scan_array_line(line_number, line, _strip_comment(line))
            else:
                self._scan_structure_line(line_number, line)
        return self.dependencies

    def _scan_structure_line(self, line_number: int, line: str) -> None:
        stripped = _strip_comment(line).strip()
        if not stripped:
            return

        header = SECTION_HEADER_PATTERN.match(stripped)
        if header:
            self.section = header.group(1).strip()
            if self.section != OPTIONAL_DEPENDENCIES_SECTION:
                self.extra = None
            return

        assignment = ARRAY_ASSIGNMENT_PATTERN.match(stripped)
        if not assignment:
            return

        key = assignment.group(1).strip("\"'")
        self.array_section = self._classify_array(key)
        self.in_array = True

        # Items can follow the opening bracket on the same line
        rest = assignment.group(2)
        offset = line.find("[") + 1
        self._scan_array_line(line_number, line, rest, offset)

    def _classify_array(self, key: str) -> Optional[DependencySection]:
        if self.section == PROJECT_SECTION and key == "dependencies":
            self.extra = None
            return DependencySection.MAIN
        if self.section == OPTIONAL_DEPENDENCIES_SECTION:
            self.extra = key
            return DependencySection.OPTIONAL
        if self.section in LEGACY_SECTIONS and key in LEGACY_KEYS:
            self.extra = None
            return DependencySection.MAIN
        # Some other array (classifiers, keywords, ...): consume it silently
        return None

    def _scan_array_line(
        self, line_number: int, line: str, text: str, offset: int = 0
    ) -> None:
        items_text, closed = _split_closing_bracket(text)
        if closed:
            self.in_array = False

        if self.array_section is None:
            return

        cursor = offset
        for raw_item in _split_items(items_text):
            parsed = _parse_pyproject_item(raw_item)
            if parsed is None:
                cursor += len(raw_item) + 1
                continue

            package_name, specifier = parsed
            start_column = line.find(package_name, cursor)
            if start_column < 0:
                start_column = line.find(package_name)
            cursor = max(cursor, start_column) + len(package_name)

            self.dependencies.append(self._make_dependency(
                package_name, specifier, line_number, start_column, len(line)
            ))

    def _make_dependency(
        self,
        package_name: str,
        specifier: str,
        line_number: int,
        start_column: int,
        end_column: int,
    ) -> ProjectManifestDependency:
        if self.array_section is DependencySection.OPTIONAL:
            extra = self.extra
            path: Tuple[str, ...] = (
                "project",
                "optional-dependencies",
                extra,
                package_name,
            )
        else:
            extra = None
            path = ("project", "dependencies", package_name)

        return ProjectManifestDependency(
            package_name=package_name,
            version_specifier=specifier,
            line=line_number,
            start_column=start_column,
            end_column=end_column,
            section=self.array_section,
            extra=extra,
            path=path,
        )


def parse_pyproject_document(content: str) -> List[ProjectManifestDependency]:
    """
    Parse the dependency arrays of a pyproject.toml document.

    Handles ``[project] dependencies``, every group of
    ``[project.optional-dependencies]`` and a legacy flat ``install_requires``
    list. Poetry tables are not dependency arrays and yield nothing.

    Args:
        content: Full document text

    Returns:
        Dependencies in declaration order; empty if the document could not be
        scanned
    """
    try:
        return _PyProjectScanner(content).scan()
    except Exception as e:
        log_parsing_error(
            "Could not scan pyproject.toml document",
            module="parsers",
            function="parse_pyproject_document",
            file_name="pyproject.toml",
            exception=e,
        )
        return []


def format_pyproject_dependency(dep: Dependency) -> str:
    """Format a dependency the way it appears inside a pyproject array."""
    return f'"{format_requirement(dep)}"'


def to_requirements_format(dep: Dependency) -> str:
    """Convert any dependency to a requirements.txt line."""
    requirement = format_requirement(dep)
    if dep.kind == "pyproject" and dep.extra:
        return f"{requirement}  # extra: {dep.extra}"
    return requirement


def format_dependency(dep: Dependency) -> str:
    """Format a dependency back to the style of the file it came from."""
    if dep.kind == "pyproject":
        return format_pyproject_dependency(dep)
    return format_requirement(dep)


# --------------------------------------------------------------------------
# Detection and dispatch
# --------------------------------------------------------------------------


class FileType(Enum):
    """Supported manifest formats."""

    REQUIREMENTS = "requirements"
    PYPROJECT = "pyproject"


@dataclass(frozen=True)
class FileTypeDetection:
    """Result of manifest format detection."""

    type: FileType
    is_valid: bool
    confidence: float


def _base_name(file_name: str) -> str:
    return PurePath(file_name.replace("\\", "/")).name


def get_file_type_from_name(file_name: str) -> Optional[FileType]:
    """Detect the manifest format from the file name alone."""
    name = _base_name(file_name)
    if name.endswith(("pyproject.toml", "Pipfile.toml")):
        return FileType.PYPROJECT
    if REQUIREMENTS_NAME_PATTERN.search(name) or name.endswith(".requirements"):
        return FileType.REQUIREMENTS
    return None


def detect_file_type(file_name: str, content: str) -> FileTypeDetection:
    """
    Detect the manifest format from file name and content.

    Args:
        file_name: File name or path
        content: Full document text

    Returns:
        FileTypeDetection with the detected type, validity and confidence
    """
    name_type = get_file_type_from_name(file_name)

    if name_type is FileType.PYPROJECT and (
        "[project]" in content
        or "project.dependencies" in content
        or "project.optional-dependencies" in content
    ):
        return FileTypeDetection(FileType.PYPROJECT, True, 1.0)

    if name_type is FileType.REQUIREMENTS and not ("[" in content and "]" in content):
        return FileTypeDetection(FileType.REQUIREMENTS, True, 0.9)

    if any(indicator in content for indicator in PYPROJECT_INDICATORS):
        return FileTypeDetection(FileType.PYPROJECT, True, 0.95)

    if REQUIREMENTS_CONTENT_PATTERN.search(content):
        return FileTypeDetection(FileType.REQUIREMENTS, True, 0.8)

    return FileTypeDetection(FileType.REQUIREMENTS, False, 0.0)


def is_supported_file(file_name: str, content: Optional[str] = None) -> bool:
    """Check whether a file can be parsed, by name or (if given) by content."""
    if get_file_type_from_name(file_name):
        return True
    if content is not None:
        return detect_file_type(file_name, content).is_valid
    return False


def parse_dependencies(file_name: str, content: str) -> List[Dependency]:
    """
    Parse dependencies from any supported manifest.

    Args:
        file_name: File name or path, used for format detection
        content: Full document text

    Returns:
        Dependencies in document order; empty if the format is not recognized
    """
    detection = detect_file_type(file_name, content)
    if not detection.is_valid:
        return []

    if detection.type is FileType.PYPROJECT:
        dependencies: List[Dependency] = list(parse_pyproject_document(content))
    else:
        dependencies = list(parse_requirements_document(content))

    log_manifest_parsed(
        _base_name(file_name),
        detection.type.value,
        len(dependencies),
        detection.confidence,
    )
    return dependencies

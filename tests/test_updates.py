"""
Version-edit and update planning tests for py-deps-hint.
"""

from py_deps_hint.parsers import parse_pyproject_document, parse_requirements_document
from py_deps_hint.updates import (
    apply_updates,
    apply_version_update,
    build_version_replacement,
    clean_specifier,
    current_version_of,
    is_retargetable,
    extract_version_from_line,
    extract_version_number,
    plan_updates,
)


class TestVersionExtraction:
    """Test locating and rewriting versions in manifest lines."""

    def test_requirements_line(self):
        match = extract_version_from_line("flask==2.0.0  # pinned", is_toml=False)

        assert match.operator == "=="
        assert match.version == "2.0.0"
        assert (match.start_index, match.end_index) == (5, 12)

    def test_requirements_stops_at_marker(self):
        match = extract_version_from_line("flask>=2.0;python_version>'3'", is_toml=False)

        assert match.version == "2.0"

    def test_toml_stops_at_quote(self):
        match = extract_version_from_line('    "flask>=2.0.0",', is_toml=True)

        assert match.operator == ">="
        assert match.version == "2.0.0"

    def test_start_offset_skips_assignment(self):
        line = 'dependencies = ["flask==2.0.0"]'

        match = extract_version_from_line(line, is_toml=True, start=line.index("flask"))

        assert match.full_match == "==2.0.0"

    def test_no_version(self):
        assert extract_version_from_line("flask", is_toml=False) is None

    def test_build_replacement_keeps_operator(self):
        assert build_version_replacement("flask~=2.0", "2.3.1", is_toml=False) == "~=2.3.1"
        assert build_version_replacement("flask", "2.3.1", is_toml=False) == "==2.3.1"

    def test_extract_version_number(self):
        assert extract_version_number("==1.0.0") == "1.0.0"
        assert extract_version_number(">= '2.0'") == "2.0"
        assert extract_version_number("") == ""

    def test_clean_specifier(self):
        assert clean_specifier('>=2.0 ; python_version < "3.8"  # pinned') == ">=2.0"
        assert clean_specifier("==1.0  # note") == "==1.0"
        assert clean_specifier("") == ""

    def test_current_version_uses_first_clause(self):
        dep = parse_requirements_document("requests>=2.28,<3  # http\n")[0]

        assert current_version_of(dep) == "2.28"

    def test_retargetable_clauses(self):
        deps = parse_requirements_document(
            "a==1.0\nb>=1.0\nc~=1.0\nd!=1.0\ne<2\nf==1.*\ng\n"
        )

        assert [is_retargetable(d) for d in deps] == [True, True, True, False, False, False, False]


class TestApplyVersionUpdate:
    """Test rewriting documents."""

    def test_requirements_document(self):
        content = "flask==2.0.0\nrequests>=2.28.0\n"

        updated = apply_version_update(content, 1, "2.31.0", is_toml=False)

        assert updated == "flask==2.0.0\nrequests>=2.31.0\n"

    def test_line_without_version_is_unchanged(self):
        content = "flask\n"

        assert apply_version_update(content, 0, "3.0.0", is_toml=False) == content
        assert apply_version_update(content, 7, "3.0.0", is_toml=False) == content

    def test_crlf_is_preserved(self):
        content = "flask==2.0.0\r\nclick==8.0.0\r\n"

        updated = apply_version_update(content, 0, "2.3.0", is_toml=False)

        assert updated == "flask==2.3.0\r\nclick==8.0.0\r\n"


class TestPlanUpdates:
    """Test safe / risky update planning and application."""

    def test_plan_splits_by_risk(self):
        deps = parse_requirements_document(
            "flask==2.0.0\nrequests>=2.28.0\nclick\nrich==13.0.0\nhttpx==0.24.0\n"
        )
        plan = plan_updates(deps, ["3.0.0", "2.31.0", "8.1.0", "13.0.0", None])

        assert [u.dependency.package_name for u in plan.safe] == ["requests"]
        assert [u.dependency.package_name for u in plan.risky] == ["flask"]
        assert plan.risky[0].analysis.is_breaking_change
        assert plan.safe[0].analysis.update_type == "minor"
        assert plan.total == 2

    def test_apply_requirements_plan(self):
        content = "flask==2.0.0\nrequests>=2.28.0\n"
        deps = parse_requirements_document(content)
        plan = plan_updates(deps, ["3.0.0", "2.31.0"])

        updated = apply_updates(content, plan.safe + plan.risky, is_toml=False)

        assert updated == "flask==3.0.0\nrequests>=2.31.0\n"

    def test_apply_inline_toml_plan(self):
        content = (
            "[project]\n"
            'dependencies = ["flask==2.0.0", "requests>=2.28.0"]\n'
            "[project.optional-dependencies]\n"
            "dev = [\n"
            '    "pytest>=7.0.0",\n'
            "]\n"
        )
        deps = parse_pyproject_document(content)
        plan = plan_updates(deps, ["2.3.3", "2.31.0", "8.0.0"])

        updated = apply_updates(content, plan.safe + plan.risky, is_toml=True)

        assert 'dependencies = ["flask==2.3.3", "requests>=2.31.0"]' in updated
        assert '    "pytest>=8.0.0",' in updated
        assert updated.startswith("[project]\n")

    def test_never_plans_a_downgrade(self):
        deps = parse_requirements_document("flask==2.0.0.post1\nclick==8.1.0\n")

        plan = plan_updates(deps, ["2.0.0", "8.0.9"])

        assert plan.total == 0

    def test_exclusions_and_upper_bounds_are_left_alone(self):
        content = "requests!=2.5.0\nurllib3<2.0\ncertifi<=2023.1\nidna==3.*\n"
        deps = parse_requirements_document(content)

        plan = plan_updates(deps, ["2.5.1", "2.2.3", "2024.2.2", "3.6"])

        assert plan.total == 0
        assert apply_updates(content, plan.safe + plan.risky, is_toml=False) == content

    def test_compatible_release_is_moved(self):
        deps = parse_requirements_document("uvicorn~=0.20.0\n")

        plan = plan_updates(deps, ["0.23.0"])

        assert [u.new_version for u in plan.safe] == ["0.23.0"]

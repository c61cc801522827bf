"""Tests for component reference parsing, version ordering and npm range merging."""

import pytest

from versioning.models import ComponentRef, ResolutionMode
from versioning.parser import parse_component_token, parse_dependency_entry, tokenize_rightmost_at
from versioning.ranges import UnsupportedRange, is_any, merge_ranges, satisfies
from versioning.semver import pick_exact, pick_latest, sort_versions


class TestComponentTokens:
    """Parsing CLI tokens and manifest dependency entries."""

    def test_plain_name_means_latest(self):
        ref = parse_component_token("button")
        assert ref == ComponentRef("button", None)
        assert ref.mode is ResolutionMode.LATEST

    def test_rightmost_at_splits_scoped_name(self):
        assert tokenize_rightmost_at("@fetch-ui/button@1.2.0") == ("@fetch-ui/button", "1.2.0")
        assert tokenize_rightmost_at("@fetch-ui/button") == ("@fetch-ui/button", None)

    def test_explicit_version_wins_and_v_prefix_is_stripped(self):
        ref = parse_component_token("button@1.0.0", "v2.0.0")
        assert ref.version == "2.0.0"
        assert ref.mode is ResolutionMode.EXACT

    def test_latest_keyword_is_treated_as_no_version(self):
        assert parse_component_token("button@latest").version is None

    def test_empty_name_is_rejected(self):
        with pytest.raises(ValueError):
            parse_component_token("   ")

    def test_dependency_entry_shapes(self):
        assert parse_dependency_entry("card@1.0.0") == ComponentRef("card", "1.0.0")
        assert parse_dependency_entry({"name": "card", "version": "1.1.0"}) == ComponentRef("card", "1.1.0")
        with pytest.raises(ValueError):
            parse_dependency_entry({"version": "1.0.0"})

    def test_str_renders_pinned_and_latest(self):
        assert str(ComponentRef("card")) == "card"
        assert str(ComponentRef("card").pinned("3.0.0")) == "card@3.0.0"


class TestVersionOrdering:
    """Semver-aware sorting of published versions."""

    def test_sort_is_semver_not_lexicographic(self):
        assert sort_versions(["1.10.0", "1.2.0", "1.9.1", "1.2.0"]) == ["1.2.0", "1.9.1", "1.10.0"]

    def test_prerelease_sorts_before_release(self):
        assert pick_latest(["2.0.0-beta.1", "1.5.0", "2.0.0"]) == "2.0.0"
        assert pick_latest(["2.0.0-beta.1", "1.5.0"]) == "2.0.0-beta.1"

    def test_invalid_versions_sort_below_semver(self):
        assert sort_versions(["nightly", "0.1.0"]) == ["nightly", "0.1.0"]

    def test_pick_latest_empty(self):
        assert pick_latest([]) is None

    def test_pick_exact_tolerates_v_prefix(self):
        assert pick_exact("1.0.0", ["v1.0.0", "1.1.0"]) == "v1.0.0"
        assert pick_exact("3.0.0", ["1.0.0"]) is None


class TestRangeMerging:
    """Intersecting npm ranges requested by different components."""

    def test_caret_ranges_merge_to_narrower(self):
        assert merge_ranges("^1.2.0", "^1.3.0") == "^1.3.0"
        assert merge_ranges("^1.3.0", "^1.2.0") == "^1.3.0"

    def test_disjoint_ranges_return_none(self):
        assert merge_ranges("^1.0.0", "^2.0.0") is None
        assert merge_ranges("~1.2.0", ">=1.3.0") is None

    def test_identical_ranges_keep_first_text(self):
        assert merge_ranges("^1.2.0", "^1.2.0") == "^1.2.0"

    def test_partial_overlap_renders_intersection(self):
        assert merge_ranges(">=1.2.0 <3.0.0", "^2.0.0 || ^1.0.0") == ">=1.2.0 <3.0.0"
        assert merge_ranges(">=1.5.0", "<2.0.0") == ">=1.5.0 <2.0.0"

    def test_wildcard_defers_to_other_side(self):
        assert merge_ranges("*", "^4.1.0") == "^4.1.0"
        assert merge_ranges("1.x", "~1.4.2") == "~1.4.2"

    def test_zero_major_caret_is_minor_bounded(self):
        assert merge_ranges("^0.2.0", "^0.3.0") is None

    def test_hyphen_range(self):
        assert merge_ranges("1.0.0 - 1.5.0", "^1.4.0") == ">=1.4.0 <=1.5.0"

    def test_non_semver_specs_raise(self):
        for spec in ("workspace:*", "github:user/repo", "file:../lib", "next-tag"):
            with pytest.raises(UnsupportedRange):
                merge_ranges(spec, "^1.0.0")

    def test_is_any(self):
        assert is_any("*")
        assert is_any("")
        assert is_any("latest")
        assert not is_any("^1.0.0")

    def test_satisfies(self):
        assert satisfies("1.4.2", "^1.2.0")
        assert not satisfies("2.0.0", "^1.2.0")
        assert not satisfies("1.0.0", "not a range")

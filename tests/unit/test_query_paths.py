"""Unit tests for relquery.query.paths and relquery.query.operators."""
from __future__ import annotations

import pytest

from relquery.errors import InvalidSortPathError
from relquery.query.operators import Operator, split_operator
from relquery.query.paths import SortDirection, SortKey, parse_sort, split_path


# ===========================================================================
# split_path
# ===========================================================================


class TestSplitPath:
    def test_dotted(self) -> None:
        assert split_path("collector.name") == ("collector", "name")

    def test_single_segment(self) -> None:
        assert split_path("name") == ("name",)

    @pytest.mark.parametrize("path", ["", ".", "collector.", ".name", "a..b"])
    def test_empty_segments_yield_nothing(self, path: str) -> None:
        assert split_path(path) == ()


# ===========================================================================
# SortKey
# ===========================================================================


class TestSortKey:
    def test_parse_default_direction(self) -> None:
        key = SortKey.parse("collector.name")
        assert key.path == ("collector", "name")
        assert key.direction is SortDirection.ASC

    def test_parse_direction_is_case_insensitive(self) -> None:
        assert SortKey.parse("name:desc").descending

    def test_parse_strips_whitespace(self) -> None:
        assert SortKey.parse(" name : DESC ") == SortKey(("name",), SortDirection.DESC)

    def test_parse_bad_direction(self) -> None:
        with pytest.raises(InvalidSortPathError) as exc_info:
            SortKey.parse("name:UP", "stamp")
        assert exc_info.value.type_name == "stamp"
        assert "ASC or DESC" in str(exc_info.value)

    def test_parse_empty_path(self) -> None:
        with pytest.raises(InvalidSortPathError):
            SortKey.parse(":ASC")

    def test_str(self) -> None:
        assert str(SortKey(("collector", "name"))) == "collector.name:ASC"

    def test_reversed(self) -> None:
        key = SortKey(("name",))
        assert key.reversed().direction is SortDirection.DESC
        assert key.reversed().reversed() == key


# ===========================================================================
# parse_sort
# ===========================================================================


class TestParseSort:
    def test_none(self) -> None:
        assert parse_sort(None) == []

    def test_comma_separated_string(self) -> None:
        keys = parse_sort("name:ASC, collector.age:DESC")
        assert [str(k) for k in keys] == ["name:ASC", "collector.age:DESC"]

    def test_blank_parts_are_ignored(self) -> None:
        assert len(parse_sort("name,,")) == 1

    def test_path_direction_tuple(self) -> None:
        assert parse_sort(("name", "desc")) == [SortKey(("name",), SortDirection.DESC)]

    def test_tuple_of_paths(self) -> None:
        keys = parse_sort(("name", "age"))
        assert [k.dotted for k in keys] == ["name", "age"]

    def test_mixed_list(self) -> None:
        keys = parse_sort(["name", SortKey(("age",), SortDirection.DESC), ("collector.name", "ASC")])
        assert [str(k) for k in keys] == ["name:ASC", "age:DESC", "collector.name:ASC"]


# ===========================================================================
# Operators
# ===========================================================================


class TestSplitOperator:
    def test_plain_name_has_no_operator(self) -> None:
        assert split_operator("name") is None

    def test_suffix(self) -> None:
        assert split_operator("age_gte") == ("age", Operator.GTE)

    def test_longest_suffix_wins(self) -> None:
        assert split_operator("name_containss") == ("name", Operator.CONTAINSS)
        assert split_operator("name_nin") == ("name", Operator.NIN)

    def test_bare_suffix_is_not_an_operator(self) -> None:
        assert split_operator("_eq") is None


class TestOperatorEvaluate:
    def test_eq_is_existential(self) -> None:
        assert Operator.EQ.evaluate(["1946", "1947"], "1947")
        assert not Operator.EQ.evaluate([], "1947")

    def test_nulls_never_compare(self) -> None:
        assert not Operator.NE.evaluate([None], "x")
        assert not Operator.LT.evaluate([None], 5)

    def test_ordering(self) -> None:
        assert Operator.LT.evaluate([25, 55], 30)
        assert Operator.GTE.evaluate([25], 25)
        assert not Operator.GT.evaluate([25], 25)

    def test_in_and_nin(self) -> None:
        assert Operator.IN.evaluate([1, 2], frozenset({2, 3}))
        assert Operator.NIN.evaluate([1, 2], frozenset({2}))
        assert not Operator.NIN.evaluate([2], frozenset({2}))

    def test_contains_is_case_insensitive(self) -> None:
        assert Operator.CONTAINS.evaluate(["Isabelle"], "bell")
        assert Operator.CONTAINS.evaluate(["Isabelle"], "ISA")

    def test_containss_is_case_sensitive(self) -> None:
        assert Operator.CONTAINSS.evaluate(["Isabelle"], "Isa")
        assert not Operator.CONTAINSS.evaluate(["Isabelle"], "isa")

    def test_null(self) -> None:
        assert Operator.NULL.evaluate([], True)
        assert Operator.NULL.evaluate([None], True)
        assert Operator.NULL.evaluate([1], False)
        assert not Operator.NULL.evaluate([None], False)

    def test_takes_list(self) -> None:
        assert Operator.IN.takes_list
        assert not Operator.EQ.takes_list

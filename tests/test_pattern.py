import pytest

from docportal.search.pattern import compile_pattern


class TestLiteralTerms:
    def test_matches_as_substring(self) -> None:
        matcher = compile_pattern("voice")
        assert matcher.matches("invoice-2024.pdf")
        assert not matcher.is_wildcard

    def test_ignores_case(self) -> None:
        assert compile_pattern("INVOICE").matches("my-invoice.txt")
        assert compile_pattern("invoice").matches("INVOICE-2024.PDF")

    def test_no_match(self) -> None:
        assert not compile_pattern("receipt").matches("invoice.pdf")

    @pytest.mark.parametrize("name", ["a.pdf", "reports/q1.PDF", "x", ""])
    def test_literal_equals_substring_check(self, name: str) -> None:
        term = "pdf"
        assert compile_pattern(term).matches(name) == (term in name.lower())

    def test_regex_metacharacters_are_literal(self) -> None:
        matcher = compile_pattern("a+b(1)")
        assert matcher.matches("file-a+b(1).pdf")
        assert not matcher.matches("aab1.pdf")


class TestWildcardTerms:
    def test_prefix_star_anchors_whole_name(self) -> None:
        matcher = compile_pattern("invoice*")
        assert matcher.is_wildcard
        assert matcher.matches("INVOICE-2024.PDF")
        assert matcher.matches("invoice.txt")
        assert not matcher.matches("my-invoice.txt")

    def test_star_matches_empty_run(self) -> None:
        assert compile_pattern("invoice*").matches("invoice")

    def test_question_mark_matches_exactly_one(self) -> None:
        matcher = compile_pattern("q?.pdf")
        assert matcher.matches("q1.pdf")
        assert not matcher.matches("q.pdf")
        assert not matcher.matches("q12.pdf")

    def test_contains_with_wildcards_on_both_sides(self) -> None:
        matcher = compile_pattern("*invoice*.pdf")
        assert matcher.matches("2024/my-invoice-final.pdf")
        assert not matcher.matches("2024/my-invoice-final.png")

    def test_star_crosses_path_separators(self) -> None:
        assert compile_pattern("*.pdf").matches("reports/2024/q1.pdf")

    def test_star_matches_newlines(self) -> None:
        assert compile_pattern("a*b").matches("a\nb")

    def test_dot_is_literal(self) -> None:
        assert not compile_pattern("*.pdf").matches("reportxpdf")

    def test_repeated_stars_behave_like_one(self) -> None:
        name = "a" * 40 + "b"
        assert not compile_pattern("*" * 30 + "c").matches(name)
        assert compile_pattern("**a**b").matches(name)

    def test_lone_star_matches_everything(self) -> None:
        matcher = compile_pattern("*")
        assert matcher.matches("")
        assert matcher.matches("anything.at/all")


class TestMatcher:
    def test_keeps_original_pattern(self) -> None:
        assert compile_pattern("Invoice*").pattern == "Invoice*"

    def test_is_frozen(self) -> None:
        matcher = compile_pattern("abc")
        with pytest.raises(AttributeError):
            matcher.needle = "xyz"  # type: ignore[misc]


class TestLongNames:
    def test_many_stars_against_max_length_name(self) -> None:
        matcher = compile_pattern("*a*a*a*a*a*a*a*b")
        assert not matcher.matches("a" * 1024)
        assert matcher.matches("a" * 1023 + "b")

    def test_many_question_marks_and_stars(self) -> None:
        matcher = compile_pattern("?*?*?*?*?*?*x")
        assert not matcher.matches("y" * 1024)

    def test_brackets_are_literal(self) -> None:
        matcher = compile_pattern("report[1]*")
        assert matcher.matches("Report[1]-final.pdf")
        assert not matcher.matches("report1-final.pdf")

    def test_unbalanced_bracket_is_literal(self) -> None:
        assert compile_pattern("*[draft*").matches("q1[draft].pdf")
        assert compile_pattern("*]*").matches("a]b")

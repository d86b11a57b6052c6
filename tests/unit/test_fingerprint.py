"""Unit tests for question fingerprints and similarity."""

import pytest

from src.diversity import OperationTag, QuestionFingerprint, calculate_similarity, derive_archetype_id
from src.diversity.fingerprint import find_most_similar, matches_filter


def fp(
    module="string-manipulation",
    subtopic="palindromes",
    archetype="valid-palindrome",
    tags=(OperationTag.VALIDATE,),
    difficulty="beginner",
    timestamp=1,
):
    return QuestionFingerprint(module, subtopic, archetype, frozenset(tags), difficulty, timestamp)


class TestSimilarity:
    @pytest.mark.parametrize("fingerprint", [
        fp(),
        fp(tags=()),
        fp(tags=(OperationTag.SORT, OperationTag.COUNT, OperationTag.SEARCH)),
        fp(module="m", subtopic="s", archetype="a", difficulty="advanced"),
    ])
    def test_identical_scores_exactly_one(self, fingerprint):
        assert calculate_similarity(fingerprint, fingerprint) == 1.0

    def test_nothing_shared_scores_zero(self):
        a = fp()
        b = fp(module="arrays", subtopic="sliding-window", archetype="max-window-sum",
               tags=(OperationTag.AGGREGATE,), difficulty="advanced")
        assert calculate_similarity(a, b) == 0.0

    def test_timestamp_ignored(self):
        assert calculate_similarity(fp(timestamp=1), fp(timestamp=999)) == 1.0

    def test_archetype_only_difference(self):
        score = calculate_similarity(fp(), fp(archetype="longest-palindromic-substring"))
        assert score == pytest.approx(0.65)

    def test_partial_tag_overlap(self):
        a = fp(tags=(OperationTag.SORT, OperationTag.SEARCH))
        b = fp(tags=(OperationTag.SORT, OperationTag.COUNT))
        assert calculate_similarity(a, b) == pytest.approx(0.8 + 0.2 / 3)

    def test_symmetric(self):
        a = fp(difficulty="advanced")
        b = fp(subtopic="anagrams")
        assert calculate_similarity(a, b) == calculate_similarity(b, a)


class TestDeriveArchetype:
    def test_first_long_word(self):
        assert derive_archetype_id("palindromes", "Check the Palindrome") == "palindromes-check"

    def test_ignores_bracketed_tags(self):
        assert derive_archetype_id("anagrams", "[Beginner] Group Words") == "anagrams-group"

    def test_no_long_words(self):
        assert derive_archetype_id("Anagrams", "a b c") == "anagrams"


class TestCompactForm:
    def test_round_trip(self):
        original = fp(tags=(OperationTag.SORT, OperationTag.COUNT), timestamp=1700000000000)
        compact = original.to_compact()

        assert compact["o"] == "COUNT,SORT"
        assert QuestionFingerprint.from_compact(compact) == original

    def test_str(self):
        assert str(fp()) == "string-manipulation/palindromes/valid-palindrome[VALIDATE]@beginner"


class TestHelpers:
    def test_find_most_similar_empty(self):
        assert find_most_similar(fp(), []) is None

    def test_find_most_similar(self):
        close = fp(difficulty="advanced")
        far = fp(module="x", subtopic="y", archetype="z")
        match, score = find_most_similar(fp(), [far, close])
        assert match is close
        assert score == pytest.approx(0.9)

    def test_matches_filter(self):
        assert matches_filter(fp(), module="string-manipulation", subtopic="palindromes")
        assert not matches_filter(fp(), subtopic="anagrams")
        assert matches_filter(fp(), difficulty="beginner")
        assert not matches_filter(fp(), archetype_id="other")

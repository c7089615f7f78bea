"""
Tests for locating a spoken word among a page's reference words.
"""

from readalong.matcher import LIVE_THRESHOLD, NO_MATCH, SCORING_THRESHOLD, find_best_match


class TestExactMatching:

    def test_self_match(self) -> None:
        for word in ["zip", "Pirates.", "a", "don't"]:
            assert find_best_match([word], word) == 0

    def test_ignores_case_and_punctuation(self, pirates: list[str]) -> None:
        assert find_best_match(pirates, "PIRATES") == 5
        assert find_best_match(pirates, "zap!") == 2

    def test_first_occurrence_wins(self) -> None:
        words = ["the", "cat", "saw", "the", "dog"]
        assert find_best_match(words, "the") == 0

    def test_exact_beats_earlier_substring(self) -> None:
        # "pirate" is a substring of "pirates" at 0, but exact "pirate" at 1 wins
        assert find_best_match(["pirates", "pirate"], "pirate") == 1


class TestSubstringMatching:

    def test_spoken_inside_reference(self) -> None:
        assert find_best_match(["the", "spaceship", "landed"], "space") == 1

    def test_reference_inside_spoken(self) -> None:
        assert find_best_match(["run", "fast"], "running") == 0

    def test_substring_beats_better_fuzzy(self) -> None:
        # "zapper" would be a decent fuzzy match for "zap", but substring at 0 wins
        assert find_best_match(["zapping", "zapper"], "zap") == 0


class TestFuzzyMatching:

    def test_live_threshold_accepts_close_word(self) -> None:
        assert find_best_match(["past"], "pass") == 0
        assert find_best_match(["past"], "pass", LIVE_THRESHOLD) == 0

    def test_scoring_threshold_rejects_same_word(self) -> None:
        assert find_best_match(["past"], "pass", SCORING_THRESHOLD) == NO_MATCH

    def test_picks_highest_similarity(self) -> None:
        words = ["planet", "rocket", "pocket"]
        # "rockat": rocket 5/6, pocket 4/6
        assert find_best_match(words, "rockat") == 1

    def test_threshold_must_be_exceeded(self) -> None:
        # similarity("past", "pass") is exactly 0.75
        assert find_best_match(["past"], "pass", 0.75) == NO_MATCH
        assert find_best_match(["past"], "pass", 0.74) == 0

    def test_unrelated_word(self, pirates: list[str]) -> None:
        assert find_best_match(pirates, "elephant") == NO_MATCH


class TestInvalidInput:

    def test_empty_reference(self) -> None:
        assert find_best_match([], "zip") == NO_MATCH
        assert find_best_match(None, "zip") == NO_MATCH

    def test_empty_spoken_word(self, pirates: list[str]) -> None:
        assert find_best_match(pirates, "") == NO_MATCH
        assert find_best_match(pirates, None) == NO_MATCH
        assert find_best_match(pirates, "?!") == NO_MATCH

    def test_blank_reference_entries_are_skipped(self) -> None:
        words = ["", "  ", "...", "zip"]
        assert find_best_match(words, "zip") == 3
        # A blank entry must not substring-match everything
        assert find_best_match(["", "zap"], "zip") == NO_MATCH

    def test_non_string_entries_are_skipped(self) -> None:
        words = [None, 7, "zip"]
        assert find_best_match(words, "zip") == 2  # type: ignore[arg-type]

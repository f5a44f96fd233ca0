"""Tests for the complexity heuristic."""

import random

from theorogram.moderation.complexity import calculate_complexity_score


def test_empty_body_scores_zero():
    assert calculate_complexity_score("") == 0


def test_whitespace_only_scores_zero():
    assert calculate_complexity_score("   \n\t  ") == 0


def test_single_sentence_without_punctuation():
    # W=5, S=1 -> 0.5 + 10 = 10.5
    assert calculate_complexity_score("a b c d e") == 10


def test_sentences_split_on_punctuation_runs():
    # W=6, S=2 -> 0.6 + 3 * 2 = 6.6
    assert calculate_complexity_score("One two three... Four five six?!") == 6


def test_long_text_is_clamped_to_100():
    body = " ".join(["word"] * 2000)
    assert calculate_complexity_score(body) == 100


def test_score_always_in_range():
    rng = random.Random(1234)
    for _ in range(300):
        sentences = []
        for _ in range(rng.randint(0, 30)):
            words = " ".join("w" * rng.randint(1, 8) for _ in range(rng.randint(0, 60)))
            sentences.append(words + rng.choice([".", "!", "?", "...", ""]))
        body = " ".join(sentences)
        score = calculate_complexity_score(body)
        assert isinstance(score, int)
        assert 0 <= score <= 100

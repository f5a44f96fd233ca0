"""
Complexity score: a crude proxy for how developed an argument is.

score = floor(words / 10 + avg_sentence_length * 2), clamped to [0, 100]
"""

import math
import re

_SENTENCE_BREAK = re.compile(r"[.!?]+")

MAX_SCORE = 100


def calculate_complexity_score(body: str) -> int:
    words = body.split()
    sentences = [s for s in _SENTENCE_BREAK.split(body) if s.strip()]

    word_count = len(words)
    avg_sentence_length = word_count / max(len(sentences), 1)

    score = math.floor(word_count / 10 + avg_sentence_length * 2)
    return max(0, min(MAX_SCORE, score))

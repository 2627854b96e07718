"""Token estimation strategies."""

import math


class CharRatioEstimator:
    """Approximate token count as ``ceil(len(text) / chars_per_token)``.

    This is a deliberate simplification, not tokenization: it is roughly
    right for English prose and code, and can misestimate badly for other
    scripts. Swap in another TokenEstimator if that matters.
    """

    def __init__(self, chars_per_token: int = 4):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        return math.ceil(len(text) / self.chars_per_token)


DEFAULT_ESTIMATOR = CharRatioEstimator()


def estimate_tokens(text: str) -> int:
    """Estimate tokens with the default 4-chars-per-token ratio."""
    return DEFAULT_ESTIMATOR.count(text)

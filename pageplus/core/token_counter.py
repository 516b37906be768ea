from __future__ import annotations

from math import ceil


class HeuristicTokenCounter:
    """Character-count token estimate used when a runtime cannot meter input."""

    def __init__(self, chars_per_token: float = 4.0) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        return ceil(len(text) / self.chars_per_token)


__all__ = ["HeuristicTokenCounter"]

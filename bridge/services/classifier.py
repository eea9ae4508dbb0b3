"""
Content classification verdict.

Classification itself is external. The bridge only consumes a boolean
verdict on whether content matches the labels it was submitted with.
"""
from typing import Protocol


class ContentClassifier(Protocol):
    async def classify(self, data: bytes, labels: tuple[str, ...]) -> bool: ...


class AcceptAllClassifier:
    """Default when no classifier is wired in: every upload passes."""

    async def classify(self, data: bytes, labels: tuple[str, ...]) -> bool:
        return True

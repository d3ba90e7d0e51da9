"""
Errors raised by the gesture pipeline.
"""
from __future__ import annotations
from typing import Iterable


class MissingLandmarks(Exception):
    """A landmark index required by a metric group is absent from the frame."""
    def __init__(self, group: str, missing: Iterable[int]):
        self.group = group
        self.missing = sorted(missing)
        super().__init__(f"missing landmarks for {group}: {self.missing}")


class InvalidConfig(ValueError):
    """A runtime configuration update fell outside its allowed domain."""

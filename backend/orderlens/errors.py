"""Exceptions raised for programming-contract violations.

Expected "no confident match" outcomes are never raised; they come back as MatchResult values.
"""


class OrderLensError(Exception):
    """Base class for orderlens errors."""


class MasterDataError(OrderLensError):
    """A required master-data list was missing (None) where one is required."""

    def __init__(self, name: str):
        super().__init__(f"master data list '{name}' is required but was None")
        self.name = name

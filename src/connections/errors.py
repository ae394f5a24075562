"""Exception types raised by the connection engine."""

from __future__ import annotations


class ConnectionsError(Exception):
    """Base class for errors raised by this package."""


class DimensionMismatchError(ConnectionsError, ValueError):
    """Two vectors of different lengths were compared.

    Vectors are never truncated or padded to make them fit.
    """

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Vectors must have the same dimension (got {left} and {right})")
        self.left = left
        self.right = right

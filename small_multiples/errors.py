from __future__ import annotations


class SmallMultiplesError(Exception):
    """Base class for errors raised by the small multiples engine."""


class DataViewError(SmallMultiplesError, ValueError):
    """Host-supplied data could not be coerced into a data view."""


class LayoutError(SmallMultiplesError):
    """A layout stage produced a dimension that cannot be drawn.

    Raised by individual stages and always converted into the minimised
    state by the resolver, so it never reaches the host.
    """

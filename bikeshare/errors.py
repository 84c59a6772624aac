from __future__ import annotations


class BikeshareError(Exception):
    """Base class for errors raised by the explorer core."""


class DatasetError(BikeshareError):
    """The source table is missing or unusable. Fatal at startup."""


class SelectionError(BikeshareError, ValueError):
    """A requested input is not one the dataset can offer."""


class SessionNotFound(BikeshareError, KeyError):
    """No live session has the requested id."""

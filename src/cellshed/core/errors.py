"""Exceptions raised by cellshed."""


class CellshedError(Exception):
    """Base class for cellshed errors."""


class ConfigurationError(CellshedError, ValueError):
    """Invalid or missing segmentation options; raised before any processing."""


class EnumerationError(CellshedError, ValueError):
    """A label image does not match the region enumeration it is used with."""

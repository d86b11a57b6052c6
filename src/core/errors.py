"""Exception types for the practice scheduler."""


class SchedulerError(Exception):
    """Base class for scheduler errors."""
    pass


class CatalogError(SchedulerError):
    """Raised when a curriculum file cannot be read or parsed."""
    pass

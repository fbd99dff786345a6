"""Error taxonomy shared by the library store, the reading log and the catalog."""


class HanjulError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(HanjulError, ValueError):
    """Bad input: missing title, out-of-range pages, empty reflection."""


class NotFoundError(HanjulError, LookupError):
    """Unknown book id or catalog volume."""


class CatalogUnavailableError(HanjulError):
    """The catalog lookup failed or returned malformed data."""


class StorageError(HanjulError):
    """A transactional failure in the relational store."""

"""Exception types raised by the readlist package."""


class ReadlistError(Exception):
    """Base class for all readlist errors."""


class InvalidBookmarkError(ReadlistError):
    """A bookmark record is missing its url."""


class DuplicateBookmarkError(ReadlistError):
    """A bookmark with the same url is already stored."""


class BookmarkNotFoundError(ReadlistError):
    """No stored bookmark matches the given key."""


class StoreError(ReadlistError):
    """The local store file could not be read or written."""


class ImportFormatError(ReadlistError):
    """An import document has the wrong overall shape."""


class RemoteStoreError(ReadlistError):
    """The remote document store rejected or failed an operation."""


class FetchError(ReadlistError):
    """Fetching page metadata failed (timeout, bad status, transport)."""


class ConfigError(ReadlistError):
    """An environment setting could not be interpreted."""

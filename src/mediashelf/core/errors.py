class MediaShelfError(Exception):
    """Base error for all user-facing media shelf exceptions."""


class ProjectNotInitializedError(MediaShelfError):
    """Raised when the data directory or database is missing."""


class ValidationError(MediaShelfError):
    """Raised when request or model invariants fail."""


class ItemNotFoundError(MediaShelfError):
    """Raised when an item id does not resolve to an indexed item."""


class UnsupportedItemTypeError(MediaShelfError):
    """Raised when an item has a type no viewer or renderer understands."""


class ThumbnailRenderError(MediaShelfError):
    """Raised when a thumbnail cannot be rendered."""


class LibraryPathError(MediaShelfError):
    """Raised when a path resolves outside the library root."""


class SgfParseError(ValidationError):
    """Raised when SGF text is not a well-formed game collection."""


class UserConfigError(MediaShelfError):
    """Raised when the static users file is unusable."""

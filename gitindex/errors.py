class GitIndexError(Exception):
    """Base class for index decoding errors."""


# Fatal: the pass is aborted
class BadMagic(GitIndexError):
    pass


class UnsupportedVersion(GitIndexError):
    pass


class TruncatedInput(GitIndexError):
    pass


class InvalidPrefix(GitIndexError):
    pass


class IndexAnomaly(GitIndexError):
    """A reportable condition; decoding continues unless running strict.

    ``position`` is the absolute stream offset at which the condition was
    detected.
    """

    def __init__(self, message: str, position: int = 0):
        super().__init__(message)
        self.position = position


# Tree extension
class IncompleteTree(IndexAnomaly):
    pass


class OverrunTree(IndexAnomaly):
    pass


class MalformedTree(IndexAnomaly):
    pass


class TreeDepthExceeded(IndexAnomaly):
    pass


# Entries and header
class NameLengthMismatch(IndexAnomaly):
    def __init__(self, message: str, position: int = 0, *, declared: int = 0, actual: int = 0):
        super().__init__(message, position)
        self.declared = declared
        self.actual = actual


class InvalidTimestamp(IndexAnomaly):
    pass


class UnknownVersion(IndexAnomaly):
    pass


class UnknownRequiredExtension(IndexAnomaly):
    pass


class ChecksumMismatch(IndexAnomaly):
    pass

from __future__ import annotations


class FetchError(Exception):
    """Base class for failures of the dataset fetch procedure."""


class FilesystemError(FetchError):
    pass


class NetworkError(FetchError):
    pass


class ArchiveError(FetchError):
    pass

"""Errors raised by the unpak package."""

from __future__ import annotations


class UnpakError(RuntimeError):
    """Base class for all the errors emitted by unpak."""


class UpstreamUnavailable(UnpakError):
    """The distribution service cannot be reached."""


class ProductMetadataMissing(UnpakError):
    """The distribution service does not know the product or depot."""


class ManifestEntryMissing(UnpakError):
    """A file we need is not listed in the version manifest."""


class CorruptIndex(UnpakError):
    """The directory volume cannot be parsed."""


class DownloadFailed(UnpakError):
    """A transfer did not complete or produced the wrong bytes."""


class FileNotFound(UnpakError, KeyError):
    """The logical path is not present in the directory tree."""

    def __str__(self) -> str:
        # KeyError quotes its argument, which looks odd in log messages
        return RuntimeError.__str__(self)


class VolumeMissingLocally(UnpakError):
    """The volume owning a logical path has not been downloaded yet."""


class NotReady(UnpakError):
    """Files were requested before the first sync pass completed."""


class ConfigurationError(UnpakError, ValueError):
    """The configuration is invalid (e.g., no required prefixes)."""

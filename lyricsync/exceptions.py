"""Custom Exceptions for the LyricSync application."""

class LyricSyncError(Exception):
    """Base class for exceptions in this module."""
    pass

class ConfigurationError(LyricSyncError):
    """Exception raised for errors in configuration loading."""
    pass

class AudioExtractionError(LyricSyncError):
    """Exception raised for errors during audio extraction."""
    pass

class TranscriptionError(LyricSyncError):
    """Exception raised for errors during transcription."""
    pass

class FormattingError(LyricSyncError):
    """Exception raised for errors while reading or writing subtitle files."""
    pass

class FileSystemError(LyricSyncError):
    """Exception raised for file system related errors (permissions, not found etc)."""
    pass

class CollaboratorError(LyricSyncError):
    """Exception raised when the sync collaborator fails or breaks its contract."""
    pass

class EmptyResultError(CollaboratorError):
    """Exception raised when the collaborator returns no entries."""
    pass

class EntryCountMismatchError(CollaboratorError):
    """Exception raised when a refine result does not have one entry per input entry."""

    def __init__(self, expected: int, received: int):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Entry count mismatch: sent {expected} entries for refinement, received {received}."
        )

class RequestInFlightError(LyricSyncError):
    """Exception raised when a collaborator request is started while another is still running."""
    pass

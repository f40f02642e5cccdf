"""Exceptions surfaced to the UI as a single message."""


class StudioError(RuntimeError):
    """Base class for failures the studio reports to the user."""


class VideoGenerationError(StudioError):
    """The remote video job could not be submitted, finished or downloaded."""


class ScriptAnalysisError(StudioError):
    """The chat model reply could not be turned into storyboard scenes."""

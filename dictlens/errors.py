class DictLensError(Exception):
    """Base class for errors surfaced to callers of the engine."""


class WorkspaceUnavailableError(DictLensError):
    """
    Raised when there is no workspace or project root to analyze.

    Unlike a missing dictionary or field (which are routine while the user is
    typing and come back as ``None``), there is no sensible fallback here, so
    the caller is told once and decides how to report it.
    """

    def __init__(self, path: str | None = None):
        self.path = path
        if path:
            message = f"No workspace is open at {path}"
        else:
            message = "No workspace is open."
        super().__init__(message)

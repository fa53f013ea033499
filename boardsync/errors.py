"""
Error taxonomy for the board core.

    BoardError
      ├── ValidationError         rejected locally, store unchanged
      └── SyncError               fetch/push failed, local state retained
            └── PermissionDeniedError  rejected by the remote authority

Nothing here is fatal: every failure is recoverable at the command boundary.
"""


class BoardError(Exception):
    """Base class for all board core errors."""
    pass


class ValidationError(BoardError):
    """Raised when a command references bad indices or unknown ids."""
    pass


class SyncError(BoardError):
    """Raised (or reported) when an outbound push or a fetch fails."""
    pass


class PermissionDeniedError(SyncError):
    """Raised when the remote side rejects the action (401/403)."""
    pass

"""
Exceptions raised by the competition engine.
"""


class TournamentError(Exception):
    """Base class for all competition engine errors."""


class ConfigurationError(TournamentError):
    """Competition setup is missing, invalid, or not ready for the request."""


class NotFoundError(TournamentError):
    """A schedule, team or match does not exist."""


class MatchStateError(TournamentError):
    """A match or stage is not in a state that allows the requested change."""


class PermissionDeniedError(TournamentError):
    """The caller is not an organizer of the schedule."""


class ConcurrencyError(TournamentError):
    """Another request holds the schedule; the caller should reload and retry."""

    def __init__(self, message='This competition was modified by another process. Reload and retry.'):
        super().__init__(message)

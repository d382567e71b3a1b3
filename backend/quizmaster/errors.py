class FetchError(RuntimeError):
    """A question load or leaderboard read/write against the store failed.

    Always recoverable: callers turn it into an error flag or an empty result.
    """


class InvalidTransition(ValueError):
    """The requested operation is not allowed in the session's current state."""

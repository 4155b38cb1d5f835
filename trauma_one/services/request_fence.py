class RequestFence:
    """Monotonic request ids giving latest-request-wins ordering.

    Each fetch takes a token from ``issue()``; when its response arrives the
    caller applies it only if ``is_current(token)`` still holds.
    """

    def __init__(self) -> None:
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def invalidate(self) -> None:
        """Make every outstanding token stale."""
        self._latest += 1

    @property
    def latest(self) -> int:
        return self._latest

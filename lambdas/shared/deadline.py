"""Per-request deadline token.

One Deadline is created when a drain request starts and is handed to every
collaborator call, retry pause and poll pause so they all stop at the same
instant. Each Deadline runs its calls on its own worker thread, so a call
abandoned by one request never holds up another request.
"""

import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from shared.errors import DrainTimeoutError


class Deadline:

    def __init__(self, expires_at: float, clock=time.monotonic):
        self._expires_at = expires_at
        self._clock = clock
        self._executor = None

    @classmethod
    def after(cls, seconds: float, clock=time.monotonic) -> 'Deadline':
        """Return a deadline ``seconds`` from now."""
        return cls(clock() + seconds, clock=clock)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    def expired(self) -> bool:
        return self._clock() >= self._expires_at

    def check(self, message: str = 'deadline exceeded') -> None:
        """Raise DrainTimeoutError if the deadline has elapsed."""
        if self.expired():
            raise DrainTimeoutError(message)

    def sleep(self, seconds: float) -> None:
        """Pause for ``seconds`` without overrunning the deadline.

        Raises DrainTimeoutError if the deadline elapses before or during the
        pause.
        """
        self.check()
        remaining = self.remaining()
        time.sleep(min(seconds, remaining))
        if seconds >= remaining:
            raise DrainTimeoutError('deadline exceeded while waiting to retry')

    def call(self, fn, *args, **kwargs):
        """Run a blocking call, giving up on it when the deadline elapses.

        Exceptions raised by ``fn`` propagate unchanged.
        """
        self.check()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='drain-call')
        future = self._executor.submit(fn, *args, **kwargs)
        try:
            return future.result(timeout=self.remaining())
        except FutureTimeout:
            future.cancel()
            raise DrainTimeoutError(
                f'deadline exceeded during {getattr(fn, "__name__", "call")}'
            ) from None

    def close(self) -> None:
        """Release the worker thread without waiting for an abandoned call.

        A call still running finishes in the background, bounded by the
        client's own socket timeouts.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

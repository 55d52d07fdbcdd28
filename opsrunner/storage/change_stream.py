# ==============================================
# ChangeSubscription
# ==============================================
#
# PURPOSE:
#   Wraps a MongoDB change stream in an object the caller owns:
#   start() opens it, cancel() shuts it down. Events are delivered
#   to a callback from a background thread.
#
# LIFECYCLE:
#
#   created ──start()──► active ──cancel()──► cancelled
#                          │
#                          └─ watcher error ─► stopped (error stored)
#
#   - start() opens the stream on the caller's thread, so errors such
#     as "change streams require a replica set" reach the caller.
#   - The watcher thread polls with try_next(), waking up at least
#     every max_await_ms to check for cancellation.
#   - cancel() is idempotent and safe to call before start().
#
# ==============================================

import threading
from typing import Any, Callable, Optional


class ChangeSubscription:
    """A cancellable, filtered subscription to change events on a collection."""

    def __init__(
        self,
        collection,
        pipeline: Optional[list] = None,
        on_change: Optional[Callable[[dict], Any]] = None,
        max_await_ms: int = 1000
    ):
        self.collection = collection
        self.pipeline = pipeline or []
        self.on_change = on_change or self._print_change
        self.max_await_ms = max_await_ms
        self.events_seen = 0
        self.error: Optional[BaseException] = None

        self._stream = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    @staticmethod
    def _print_change(change: dict) -> None:
        print(f"Change detected (filtered): {change}")

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ChangeSubscription":
        """Open the change stream and start delivering events."""
        if self._stream is not None:
            raise RuntimeError("Subscription already started.")
        if self._stop.is_set():
            raise RuntimeError("Subscription was cancelled and cannot be restarted.")

        self._stream = self.collection.watch(
            self.pipeline,
            max_await_time_ms=self.max_await_ms
        )
        self._thread = threading.Thread(
            target=self._watch_loop,
            daemon=True,
            name=f"change-stream-{getattr(self.collection, 'name', 'collection')}"
        )
        self._thread.start()
        return self

    def _watch_loop(self) -> None:
        stream = self._stream
        try:
            while not self._stop.is_set() and stream.alive:
                change = stream.try_next()
                if change is None:
                    continue
                self.events_seen += 1
                self.on_change(change)
        except Exception as e:
            if not self._stop.is_set():
                self.error = e
                print(f"⚠ Change stream stopped with error: {e}")
        finally:
            stream.close()

    def cancel(self, timeout: float = 5.0) -> None:
        """Stop delivering events and close the stream."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                # Still blocked in getMore; closing the cursor unblocks it
                self._stream.close()
                self._thread.join(timeout=timeout)
        elif self._stream is not None:
            self._stream.close()

    close = cancel

    def __enter__(self):
        if self._stream is None:
            self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cancel()

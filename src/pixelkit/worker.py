"""
Single-flight background worker for pixel-art conversions.

Each worker owns one dedicated thread. Requests and results cross the thread
boundary as immutable records, so the caller and the worker never share a
mutable buffer. There is no internal queue: ``process`` refuses a second
request while one is outstanding, and ``stop`` only discards the pending
result, it does not interrupt the computation.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional, Union

from .messages import PixelArtError, ProcessPixelArtDone, ProcessPixelArtRequest
from .pipeline import PixelArtPipeline

WORKER_ERROR_MESSAGE = "Worker error while processing image."


class ProcessingError(PixelArtError, RuntimeError):
    """Opaque failure of a conversion; the original exception is the __cause__."""

    def __init__(self, message: str = WORKER_ERROR_MESSAGE):
        super().__init__(message)


class PixelArtWorker:
    """Runs conversions on a dedicated thread and reports through callbacks."""

    def __init__(self, on_processed: Callable[[ProcessPixelArtDone], None],
                 on_error: Callable[[ProcessingError], None],
                 verbose: bool = False):
        """
        Args:
            on_processed: Called with the result, on the worker thread. If it
                raises, the exception reaches on_error as a ProcessingError
            on_error: Called with a ProcessingError, on the worker thread
            verbose: Print pipeline stage progress
        """
        self.on_processed = on_processed
        self.on_error = on_error
        self._pipeline = PixelArtPipeline(verbose=verbose)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="pixelkit-worker")
        self._state_lock = threading.Lock()
        self._pending: Optional[Future] = None
        self._generation = 0
        self._closed = False

    @property
    def processing(self) -> bool:
        with self._state_lock:
            return self._pending is not None

    def process(self, request: Union[ProcessPixelArtRequest, Dict[str, Any]]) -> bool:
        """
        Dispatch a request.

        Returns:
            False when a request is already outstanding or the worker is closed
        """
        with self._state_lock:
            if self._closed or self._pending is not None:
                return False
            self._generation += 1
            generation = self._generation
            future = self._executor.submit(self._pipeline.process, request)
            self._pending = future

        future.add_done_callback(lambda done: self._finish(done, generation))
        return True

    def stop(self):
        """Forget the outstanding request; its result will be dropped."""
        with self._state_lock:
            self._generation += 1
            self._pending = None

    def _finish(self, future: Future, generation: int):
        with self._state_lock:
            if generation != self._generation:
                return
            self._pending = None

        exc = future.exception()
        if exc is None:
            try:
                self.on_processed(future.result())
                return
            except Exception as callback_exc:
                exc = callback_exc

        error = ProcessingError()
        error.__cause__ = exc
        self.on_error(error)

    def close(self, wait: bool = True):
        """Refuse new requests and shut the worker thread down."""
        with self._state_lock:
            self._closed = True
        self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

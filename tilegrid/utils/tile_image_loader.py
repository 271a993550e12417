"""Background image loading for tile widgets and the modal."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import requests
from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage

from tilegrid.utils.flow_log import log_flow
from tilegrid.utils.settings import DEFAULT_SETTINGS


def read_image_bytes(src: str, timeout: float = DEFAULT_SETTINGS['probe_timeout_s'],
                     session: requests.Session | None = None) -> bytes:
    if src.startswith(('http://', 'https://')):
        response = (session or requests).get(src, timeout=timeout)
        response.raise_for_status()
        return response.content
    return Path(src).read_bytes()


def decode_image(data: bytes) -> QImage:
    image = QImage.fromData(data)
    if image.isNull():
        raise ValueError("Unsupported or corrupt image data")
    return image


class TileImageLoader(QObject):
    """
    Loads and decodes images on worker threads.

    Results are delivered through signals, which Qt queues onto the thread
    that owns the loader (the UI thread).
    """

    image_loaded = Signal(str, QImage)  # (key, image)
    image_failed = Signal(str, str)  # (key, error message)

    def __init__(self, max_workers: int = DEFAULT_SETTINGS['image_load_workers'],
                 timeout: float = DEFAULT_SETTINGS['probe_timeout_s'], executor=None):
        super().__init__()
        self.timeout = timeout
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="tile_image")
        # key -> current future. Written by the UI thread and by worker callbacks.
        self._pending: dict[str, Future] = {}
        self._pending_lock = threading.Lock()
        self._closed = False

    def load(self, key: str, src: str):
        with self._pending_lock:
            if self._closed or key in self._pending:
                return
            future = self._executor.submit(self._load_blocking, src)
            self._pending[key] = future
        # Registered after the entry exists, so an already-finished future still matches it.
        future.add_done_callback(lambda f, key=key, src=src: self._finish(key, src, f))

    def cancel(self, key: str):
        with self._pending_lock:
            future = self._pending.pop(key, None)
        if future is not None:
            future.cancel()

    def _load_blocking(self, src: str) -> QImage:
        return decode_image(read_image_bytes(src, timeout=self.timeout))

    def _finish(self, key: str, src: str, future: Future):
        # Runs on the worker thread (or inline if the future was already done).
        if future.cancelled():
            return
        with self._pending_lock:
            # A cancelled-while-running or superseded load no longer owns the key.
            if self._closed or self._pending.get(key) is not future:
                return
            del self._pending[key]
        try:
            image = future.result()
        except Exception as e:
            log_flow("RENDER", f"Image failed to load: {src} ({e})")
            self.image_failed.emit(key, str(e))
            return
        self.image_loaded.emit(key, image)

    def close(self):
        if self._closed:
            return
        with self._pending_lock:
            self._closed = True
            futures = list(self._pending.values())
            self._pending.clear()
        for future in futures:
            future.cancel()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

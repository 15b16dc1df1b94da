from __future__ import annotations

import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from .errors import DownloadError, NetworkError, NotFoundError, UnexpectedStatusError
from .logging_setup import get_logger
from .redirects import USER_AGENT

log = get_logger("mindustry.launcher.download")

BLOCK_SIZE = 65536

ProgressCallback = Callable[[int, int], None]


class WindowedMean:
    """
    Running average of a rate over the last N samples.

    Each sample stores the value and the milliseconds elapsed since the previous
    sample, so `mean()` is in units per millisecond. The very first sample has no
    previous timestamp and is discarded.
    """

    def __init__(self, max_window_size: int, clock: Callable[[], float] = time.monotonic):
        self.max_window_size = max_window_size
        self._data: List[Tuple[float, float]] = [(0.0, 1.0)] * max_window_size
        self._count = 0
        self._last_time: Optional[float] = None
        self._clock = clock

    def add(self, value: float) -> None:
        now = self._clock()
        if self._last_time is not None:
            elapsed_ms = max(1.0, (now - self._last_time) * 1000)
            self._data[self._count % self.max_window_size] = (value, elapsed_ms)
            self._count += 1
        self._last_time = now

    def mean(self, window_size: Optional[int] = None, default: Optional[float] = None) -> Optional[float]:
        window_size = self.max_window_size if window_size is None else window_size
        if window_size > self.max_window_size:
            raise ValueError(f"Cannot get average over the last {window_size} values because only "
                             f"{self.max_window_size} values are stored")
        if window_size <= 0 or self._count < window_size:
            return default
        end = self._count % self.max_window_size
        total = 0.0
        for i in range(1, window_size + 1):
            value, elapsed = self._data[(end - i) % self.max_window_size]
            total += value / elapsed
        return total / window_size


def format_file_size(size: float, unit: str = "B") -> str:
    if size < 1e3:
        return f"{size:.0f} {unit}"
    if size < 1e6:
        return f"{size / 1e3:.2f} K{unit}"
    if size < 1e9:
        return f"{size / 1e6:.2f} M{unit}"
    return f"{size / 1e9:.2f} G{unit}"


class ProgressReporter:
    """Progress callback for download_file that logs at most once per interval."""

    def __init__(self, logger=log, interval: float = 1.0, window: int = 20,
                 clock: Callable[[], float] = time.monotonic):
        self.logger = logger
        self.interval = interval
        self.rate = WindowedMean(window, clock=clock)
        self._clock = clock
        self._last_bytes = 0
        self._last_report: Optional[float] = None

    def __call__(self, downloaded: int, total: int) -> None:
        self.rate.add(downloaded - self._last_bytes)
        self._last_bytes = downloaded
        now = self._clock()
        done = total > 0 and downloaded >= total
        if not done and self._last_report is not None and now - self._last_report < self.interval:
            return
        self._last_report = now
        per_ms = self.rate.mean(min(5, self.rate.max_window_size))
        speed = "?" if per_ms is None else format_file_size(per_ms * 1000) + "/s"
        pct = (downloaded / total * 100) if total else 0.0
        self.logger.info("Downloading: %s / %s (%.0f%%) at %s",
                         format_file_size(downloaded), format_file_size(total), pct, speed)


def download_file(url: str, output_path: Path, progress: Optional[ProgressCallback] = None,
                  timeout: float = 30.0) -> int:
    """Stream `url` into `output_path`. Returns the number of bytes written."""
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        response = urllib.request.urlopen(req, timeout=timeout)
    except urllib.error.HTTPError as e:
        e.close()
        if e.code == 404:
            raise NotFoundError("File does not exist.") from e
        raise UnexpectedStatusError(e.code, expected="200") from e
    except urllib.error.URLError as e:
        raise NetworkError(f"Could not reach {url}: {e.reason}") from e

    with response:
        if response.status != 200:
            raise UnexpectedStatusError(response.status, expected="200")
        length = response.headers.get("Content-Length")
        total = int(length) if length and length.isdigit() else None

        downloaded = 0
        if progress and total is not None:
            progress(downloaded, total)
        with open(output_path, "wb") as f:
            while True:
                chunk = response.read(BLOCK_SIZE)
                if not chunk:
                    break
                f.write(chunk)
                downloaded += len(chunk)
                if progress and total is not None:
                    progress(downloaded, total)
    if total is not None and downloaded < total:
        raise DownloadError(f"Connection closed after {downloaded} of {total} bytes.")
    return downloaded

# progress.py
import re
import time

from PySide6.QtCore import QObject, QTimer, Signal, Slot

import config

TIMESTAMP_PATTERN = re.compile(r'(-?)(\d+):(\d{2}):(\d{2}(?:\.\d+)?)')

class ProgressTracker(QObject):
    """Monotonic progress in [0, 1] for one operation.

    Intermediate values are capped below 1.0; only ``complete`` delivers 1.0.
    After ``stop`` or ``complete`` every report is ignored until ``reset``.
    """
    progress_updated = Signal(float)

    def __init__(self, parent=None):
        super().__init__(parent)
        self._last_value = 0.0
        self._is_active = False
        self._is_completed = False

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def value(self) -> float:
        return self._last_value

    def reset(self):
        self._last_value = 0.0
        self._is_active = True
        self._is_completed = False
        self.progress_updated.emit(0.0)

    def report(self, value: float):
        if not self._is_active:
            return
        value = min(max(float(value), 0.0), config.PROGRESS_CEILING)
        if value <= self._last_value:
            return
        self._last_value = value
        self.progress_updated.emit(value)

    def complete(self):
        if not self._is_active or self._is_completed:
            return
        self._is_completed = True
        self._is_active = False
        self._last_value = 1.0
        self.progress_updated.emit(1.0)

    @Slot()
    def stop(self):
        self._is_active = False

def estimate_duration(frame_count: int, uses_hardware: bool) -> float:
    per_frame = (config.PROGRESS_SECONDS_PER_FRAME_HARDWARE if uses_hardware
                 else config.PROGRESS_SECONDS_PER_FRAME_SOFTWARE)
    return max(config.PROGRESS_MIN_ESTIMATE_S, frame_count * per_frame)

class HeuristicProgressEstimator(QObject):
    """Elapsed time against an estimated encode time, sampled on a timer."""

    def __init__(self, tracker: ProgressTracker, parent=None):
        super().__init__(parent)
        self.tracker = tracker
        self.estimated_duration = config.PROGRESS_MIN_ESTIMATE_S
        self._started_at = 0.0
        self._timer = QTimer(self)
        self._timer.setInterval(config.PROGRESS_SAMPLE_INTERVAL_MS)
        self._timer.timeout.connect(self._sample)

    def start(self, frame_count: int, uses_hardware: bool):
        self.estimated_duration = estimate_duration(frame_count, uses_hardware)
        self._started_at = time.monotonic()
        self._timer.start()

    def stop(self):
        self._timer.stop()

    @Slot()
    def _sample(self):
        if not self.tracker.is_active:
            self._timer.stop()
            return
        elapsed = time.monotonic() - self._started_at
        self.tracker.report(min(elapsed / self.estimated_duration, config.PROGRESS_CEILING))

def parse_timestamp(line: str) -> float | None:
    match = TIMESTAMP_PATTERN.search(line)
    if not match:
        return None
    sign, hours, minutes, seconds = match.groups()
    # ffmpeg reports a negative out_time before the first frame
    if sign:
        return None
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)

class MeasuredProgressParser:
    """Turns ffmpeg ``-progress`` output into progress against a known duration."""

    def __init__(self, tracker: ProgressTracker, total_duration: float):
        self.tracker = tracker
        self.total_duration = total_duration
        self._buffer = ""

    def feed(self, data: bytes | str):
        if isinstance(data, bytes):
            data = data.decode('utf-8', errors='replace')
        self._buffer += data
        *lines, self._buffer = self._buffer.split('\n')
        for line in lines:
            self._handle_line(line.strip())

    def _handle_line(self, line: str):
        if self.total_duration <= 0 or not line.startswith('out_time='):
            return
        seconds = parse_timestamp(line)
        if seconds is not None:
            self.tracker.report(min(seconds / self.total_duration, 1.0))

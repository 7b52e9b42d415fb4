"""
Progress tracking for long-running bulk operations.
Logs processed counts and ETA at percentage intervals.
"""
import time
import logging

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Tracks progress and logs ETA for batch operations"""

    def __init__(self, total: int, log_interval_percent: int = 10, operation_name: str = "Processing"):
        self.total = total
        self.processed = 0
        self.start_time = time.time()
        self.last_percent_logged = -log_interval_percent
        self.log_interval = log_interval_percent
        self.operation_name = operation_name

    def update(self, count: int = 1) -> None:
        self.processed += count

        if self.total == 0:
            return

        percent = int((self.processed * 100) / self.total)
        if percent < self.last_percent_logged + self.log_interval and self.processed < self.total:
            return

        elapsed = time.time() - self.start_time
        rate = (self.processed / elapsed) if elapsed > 0 else 0.0
        eta_seconds = ((self.total - self.processed) / rate) if rate > 0 else 0.0
        eta_min, eta_sec = divmod(int(eta_seconds), 60)

        logger.info(
            f"{self.operation_name}: {self.processed}/{self.total} ({percent}%) - "
            f"elapsed {elapsed:.1f}s, ETA {eta_min:02d}:{eta_sec:02d}"
        )
        self.last_percent_logged = percent

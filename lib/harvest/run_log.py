"""
Run logging - Capture and compress the logs of a harvest run.
"""

import gzip
import io
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger


class RunLogger:
    """
    Captures logs during a harvest run and saves a gzip copy locally.

    Usage:
        with RunLogger("harvest", log_dir="logs") as run_log:
            # run the orchestrator
            logger.info("Processing...")
        # run_log.saved_path points at logs/harvest_<date>_<time>.log.gz
    """

    def __init__(self, run_name: str, log_dir: Optional[str] = None):
        """
        Args:
            run_name: Prefix for the log file name
            log_dir: Directory for the compressed log (nothing saved when None)
        """
        self.run_name = run_name
        self.log_dir = log_dir
        self.saved_path: Optional[Path] = None

        self._log_buffer = io.StringIO()
        self._handler_id: Optional[int] = None
        self._start_time: Optional[datetime] = None

    def __enter__(self) -> "RunLogger":
        """Start capturing logs."""
        self._start_time = datetime.now()

        self._handler_id = logger.add(
            self._log_buffer,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
            level="DEBUG",
        )

        logger.info(f"=== Harvest started: {self.run_name} ===")
        logger.info(f"Start time: {self._start_time.isoformat()}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Stop capturing and save the log."""
        end_time = datetime.now()

        if exc_type:
            logger.error(f"Harvest failed with error: {exc_val}")

        logger.info(f"End time: {end_time.isoformat()}")
        logger.info(f"Duration: {end_time - self._start_time}")
        logger.info(f"=== Harvest completed: {self.run_name} ===")

        if self._handler_id is not None:
            logger.remove(self._handler_id)
            self._handler_id = None

        if self.log_dir:
            try:
                self.saved_path = self._save_local(self._log_buffer.getvalue(), end_time)
                logger.info(f"Run log saved: {self.saved_path}")
            except OSError as e:
                logger.error(f"Failed to save run log: {e}")

        return False  # Don't suppress exceptions

    @property
    def content(self) -> str:
        return self._log_buffer.getvalue()

    def _save_local(self, content: str, timestamp: datetime) -> Path:
        """Compress and write the log file."""
        filename = f"{self.run_name}_{timestamp.strftime('%Y-%m-%d')}_{timestamp.strftime('%H%M%S')}.log.gz"
        directory = Path(self.log_dir)
        directory.mkdir(parents=True, exist_ok=True)

        path = directory / filename
        path.write_bytes(gzip.compress(content.encode("utf-8")))
        return path

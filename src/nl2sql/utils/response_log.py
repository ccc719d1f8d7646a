"""
Best-effort capture of raw model responses for offline inspection.

Each response lands in its own response_YYYYMMDD_HHMMSS_fff.txt file.
Write failures are logged and never reach the pipeline.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from nl2sql.config import DiagnosticsConfig
from nl2sql.utils.logging import get_module_logger
from nl2sql.utils.tracing import current_trace_id

logger = get_module_logger()


class ResponseLogger:
    """Writes raw model responses to a log directory when enabled."""

    def __init__(self, config: DiagnosticsConfig):
        self.enabled = config.log_responses
        self.log_dir = Path(config.response_log_dir)

    @staticmethod
    def file_name(moment: datetime) -> str:
        return f"response_{moment.strftime('%Y%m%d_%H%M%S')}_{moment.microsecond // 1000:03d}.txt"

    def save(self, prompt: str, response: str, moment: Optional[datetime] = None) -> Optional[Path]:
        """
        Persist one prompt/response pair.

        Returns:
            Path written, or None when disabled or the write failed
        """
        if not self.enabled:
            return None

        moment = moment or datetime.now()
        path = self.log_dir / self.file_name(moment)

        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(
                f"=== PROMPT ===\n{prompt}\n\n=== RESPONSE ===\n{response}\n",
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning(
                "Failed to write model response log",
                path=str(path),
                error=str(e),
                trace_id=current_trace_id(),
            )
            return None

        logger.debug("Model response logged", path=str(path))
        return path

"""
monitoring.py — Logging setup and run summaries for the adoption metrics pipeline.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from config import LOG_DIR, LOG_FILE

ROOT_LOGGER_NAME = "screening_metrics"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """
    Set up structured logging to both file and stdout.
    Returns the root logger for the application.
    """
    log_file = Path(log_file) if log_file else LOG_FILE
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Prevent duplicate handlers on re-init
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger for a specific module."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def log_source_success(logger: logging.Logger, source_name: str, count: int):
    """Log a successful source read."""
    logger.info(f"[{source_name}] Loaded {count} records successfully")


def log_source_failure(logger: logging.Logger, source_name: str, error: Exception):
    """Log a source read failure."""
    logger.error(f"[{source_name}] Read failed: {type(error).__name__}: {str(error)}")


def log_pipeline_step(logger: logging.Logger, step: str, input_count: int, output_count: int):
    """Log a pipeline step with input/output counts."""
    filtered = input_count - output_count
    logger.info(f"[{step}] {input_count} in → {output_count} out ({filtered} filtered)")


def log_diagnostics(logger: logging.Logger, source: str, diagnostics) -> None:
    """Log row-level diagnostic counters for one source. Never fails the run."""
    counts = diagnostics.as_dict()
    if not any(counts.values()):
        logger.info(f"[{source}] No rows skipped or excluded")
        return
    parts = ", ".join(f"{name}: {count}" for name, count in counts.items() if count)
    logger.warning(f"[{source}] Row diagnostics — {parts}")


def log_run_summary(
    logger: logging.Logger,
    application_rows: int,
    interview_rows: int,
    canonical_interviews: int,
    adoption_rate_pct: Optional[float],
    alerts_raised: int,
    errors: list[str],
    duration: float
):
    """Log a complete run summary."""
    logger.info("=" * 60)
    logger.info("RUN SUMMARY")
    logger.info(f"  Application rows:      {application_rows}")
    logger.info(f"  Interview log rows:    {interview_rows}")
    logger.info(f"  Canonical interviews:  {canonical_interviews}")
    if adoption_rate_pct is not None:
        logger.info(f"  Post-launch adoption:  {adoption_rate_pct}%")
    logger.info(f"  Feedback alerts:       {alerts_raised}")
    logger.info(f"  Errors:                {len(errors)}")
    logger.info(f"  Duration:              {duration:.1f}s")

    if errors:
        logger.warning("ERRORS:")
        for err in errors:
            logger.warning(f"  - {err}")

    logger.info("=" * 60)

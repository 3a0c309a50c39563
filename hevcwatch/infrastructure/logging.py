import logging
from pathlib import Path

def setup_logging(log_path: Path, debug: bool = False) -> logging.Logger:
    """
    Setup logging configuration for hevcwatch.

    Creates the parent directory of the log file and routes all records
    there. Console output is handled separately by the ConsoleReporter.
    Returns configured logger instance.

    Args:
        log_path: Path to the application log file
        debug: If True, enable DEBUG level logging (ffmpeg commands, probe fallbacks)
    """
    log_file = Path(log_path)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger("hevcwatch")
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")

    return logger

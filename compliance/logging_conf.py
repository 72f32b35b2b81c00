import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """Configures the root logger for the CLI."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {level}, defaulting to INFO")
        numeric_level = logging.INFO

    # Format: "2025-10-27 10:00:00 [INFO] compliance.ranking: Rejected weight vector..."
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.addHandler(handler)

    # openpyxl warns on every unsupported workbook extension
    logging.getLogger("openpyxl").setLevel(logging.ERROR)

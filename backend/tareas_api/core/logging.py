"""Process-wide logging setup for the tareas-api entry point."""

import logging
import sys


def configure_logging(level: str | int = logging.INFO) -> None:
    """
    Install a single stderr handler on the root logger.

    Call this once, before the first log line. Existing root handlers are
    replaced so repeated calls do not duplicate output.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)

    logging.captureWarnings(True)

"""
Logging setup for the command line tools.

Library modules only create loggers under the ``bubblescape`` namespace;
handlers are installed here, once, by the entry point.
"""

import logging
import sys


LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s | %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """
    Configure the root logger for console output.

    Args:
        verbose: Emit DEBUG messages from bubblescape modules.
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    logging.getLogger("bubblescape").setLevel(logging.DEBUG if verbose else logging.INFO)
    # Third-party chatter stays quiet unless something goes wrong
    logging.getLogger("numba").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

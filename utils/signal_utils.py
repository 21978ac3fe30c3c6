import signal
import sys

from utils.logger_utils import get_logger

logger = get_logger("Signal Utils")


def configure_signals() -> None:
    """
    Installs a SIGTERM handler so the indexer exits through the normal
    shutdown path (finally blocks close the RPC sessions and flush caches).
    """

    def sigterm_handler(_signo, _stack_frame):
        logger.info("Received SIGTERM. Shutting down the indexer...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, sigterm_handler)

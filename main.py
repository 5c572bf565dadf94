"""Demo: generates synthetic log records through a rotating, retained log file."""

import logging
import random
import signal
import sys
import time
import uuid

from logrotor.config import load_config
from logrotor.logging_setup import init_logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [logrotor-demo] %(levelname)s %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)
app_logger = logging.getLogger("demo.app")

_running = True


def _signal_handler(sig, _frame):
    global _running
    logger.info("Shutdown signal received (signal %d), stopping...", sig)
    _running = False


LEVELS = [logging.INFO, logging.INFO, logging.INFO, logging.DEBUG, logging.WARNING, logging.ERROR]
SERVICES = ["auth-api", "order-svc", "payment-gw", "user-svc", "catalog-api"]
MESSAGES = {
    logging.INFO: [
        "Request processed successfully",
        "Health check passed",
        "Database query completed in 12ms",
    ],
    logging.DEBUG: [
        "Entering request handler",
        "Token validation started",
    ],
    logging.WARNING: [
        "Slow query detected (>500ms)",
        "Connection pool nearing capacity",
    ],
    logging.ERROR: [
        "Failed to connect to database",
        "Timeout waiting for upstream response",
    ],
}


def emit_entry():
    level = random.choice(LEVELS)
    app_logger.log(
        level, "[%s] [%s] %s",
        random.choice(SERVICES), uuid.uuid4().hex[:8], random.choice(MESSAGES[level]),
    )


def main():
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    config = load_config()
    if config.file is None:
        logger.error("No log file configured; set LOG_FILE or CONFIG_PATH")
        sys.exit(1)
    logger.info("Starting demo: file=%s, rotation=%s, queue=%s",
                config.file.path, config.file.rotation, config.queue)

    entries = 0
    with init_logging(config, logger_name="demo", propagate=False) as handle:
        try:
            while _running:
                emit_entry()
                entries += 1
                time.sleep(0.01)
        except KeyboardInterrupt:
            pass
    logger.info("Shut down cleanly. Entries emitted: %d, metrics: %s", entries, handle.metrics.snapshot())


if __name__ == "__main__":
    main()

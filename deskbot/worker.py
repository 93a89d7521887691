"""
Polling worker.

Runs the queue dispatcher in a loop without the HTTP surface.

Usage:
    python -m deskbot.worker              # poll forever
    python -m deskbot.worker --once       # one batch, then exit
    python -m deskbot.worker --interval 10 --batch-size 20
"""

import argparse
import asyncio
import logging
import signal
from typing import Optional

from deskbot.bootstrap import build_container, setup_logging
from deskbot.config import get_settings

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Process the deskbot message queue")
    parser.add_argument("--once", action="store_true", help="Process one batch and exit")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.worker_interval_seconds,
        help="Seconds to wait between batches",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.queue_batch_size,
        help="Maximum items per batch",
    )
    return parser.parse_args(argv)


async def run(once: bool, interval: float, batch_size: int) -> int:
    """
    Process batches until stopped.

    Returns:
        Total number of completed items
    """
    settings = get_settings()
    container = await build_container(settings)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Signal handlers are unavailable on Windows event loops
            pass

    total = 0
    try:
        while not stop.is_set():
            try:
                total += await container.dispatcher.process_batch(batch_size)
            except Exception as e:
                logger.error(f"Batch failed: {e}", exc_info=True)
                if once:
                    raise

            if once:
                break

            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
    finally:
        await container.close()

    logger.info(f"Worker stopped after completing {total} items")
    return total


def main(argv: Optional[list[str]] = None) -> None:
    args = parse_args(argv)
    setup_logging(get_settings().debug)
    asyncio.run(run(args.once, args.interval, args.batch_size))


if __name__ == "__main__":
    main()

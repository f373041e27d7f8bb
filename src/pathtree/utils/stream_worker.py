import logging
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def stream_worker(
    stream: Iterable[T],
    num_workers: int,
    handler: Callable[[T], None],
) -> int:
    """
    Drain a lazy stream with at most ``num_workers`` handler calls in flight.

    The stream is consumed one item at a time from the calling thread, so it is
    never materialized. The call blocks until every item has been handled or
    the first handler fails.

    Args:
        stream: Items to process, typically a store cursor.
        num_workers: Maximum number of concurrent handler calls (must be >= 1).
        handler: Called once per item from a worker thread.

    Returns:
        The number of items handled.

    Raises:
        ValueError: If num_workers < 1.
        Exception: The first error raised by the stream or a handler. Handlers
            already running are awaited, queued ones are cancelled, completed
            ones are not undone.
    """
    if num_workers < 1:
        msg = "num_workers must be at least one"
        raise ValueError(msg)

    handled = 0
    pending: set[Future[None]] = set()
    iterator = iter(stream)

    with ThreadPoolExecutor(max_workers=num_workers, thread_name_prefix="pathtree-worker") as executor:
        try:
            for item in iterator:
                if len(pending) >= num_workers:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    handled += _collect(done)
                pending.add(executor.submit(handler, item))

            done, pending = wait(pending)
            handled += _collect(done)
        except BaseException:
            for future in pending:
                future.cancel()
            wait(pending)
            raise
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                close()

    return handled


def _collect(done: set[Future[None]]) -> int:
    """Re-raise the first failure among finished futures, otherwise count them."""
    for future in done:
        error = future.exception()
        if error is not None:
            logger.debug(f"Stream worker failed: {error!r}")
            raise error
    return len(done)

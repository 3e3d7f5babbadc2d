"""
Exception hierarchy for the duplicate detection pipeline.

Only ConfigurationError escapes a processing run; the other errors are
contained to the listing or candidate pair being processed and counted.
"""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class DeduplicationError(Exception):
    """Base class for pipeline errors"""


class ConfigurationError(DeduplicationError):
    """Invalid settings or missing collaborators, raised before any work starts"""


class CollaboratorError(DeduplicationError):
    """Vectorizer or text-completion service failure"""


class CollaboratorTimeoutError(CollaboratorError, TimeoutError):
    """External call exceeded its time budget"""


class RepositoryError(DeduplicationError):
    """Object creation, extension or status update failed"""


def call_with_timeout(func: Callable[..., Any], timeout: Optional[float], *args, **kwargs) -> Any:
    """
    Run a collaborator call with a bounded wait.

    Args:
        func: Callable to invoke
        timeout: Seconds to wait; None or 0 calls func inline
        *args, **kwargs: Passed through to func

    Returns:
        Whatever func returns

    Raises:
        CollaboratorTimeoutError: If func did not finish in time. The worker
            thread is abandoned, not killed.
    """
    if not timeout:
        return func(*args, **kwargs)

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as e:
        future.cancel()
        name = getattr(func, '__qualname__', repr(func))
        logger.warning(f"Call to {name} timed out after {timeout}s")
        raise CollaboratorTimeoutError(f"{name} timed out after {timeout}s") from e
    finally:
        executor.shutdown(wait=False)

import time
import asyncio
import functools
import logging

logger = logging.getLogger("otp_service.timing")


def timeit(label: str = ""):
    """
    Decorator to log execution time for a function (sync or async).

    Usage:
        @timeit()
        def foo():
            ...

        @timeit("request_otp")
        async def bar():
            await ...
    """

    def _decorate(func):
        name = label or getattr(func, "__qualname__", getattr(func, "__name__", "function"))

        def _report(start: float) -> None:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            logger.debug(f"[timing] {name} took {elapsed_ms:.2f} ms")

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _aw(*args, **kwargs):
                start = time.perf_counter()
                try:
                    return await func(*args, **kwargs)
                finally:
                    _report(start)

            return _aw

        @functools.wraps(func)
        def _w(*args, **kwargs):
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                _report(start)

        return _w

    return _decorate

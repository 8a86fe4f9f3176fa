"""Request correlation for scheduling mutations.

Every SchedulingService mutation runs inside ``request_context``, so log
lines from the lifecycle, assignment and repository layers carry the id
of the client request that caused them. Ids default to
``<surface>-<hex>`` so a web dashboard write and a mobile drag racing on
the same booking stay distinguishable in one log stream.

Usage:
    with request_context("mobile-7f3a"):
        service.reschedule(...)   # records carry request_id="mobile-7f3a"
"""

import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator, Optional

NO_REQUEST = "-"

_request_id: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST)


def new_request_id(surface: str) -> str:
    return f"{surface}-{uuid.uuid4().hex[:8]}"


def get_request_id() -> str:
    return _request_id.get()


@contextmanager
def request_context(request_id: Optional[str], surface: str = "web") -> Iterator[str]:
    """Bind a request id for the duration of one mutation.

    A missing id is generated from ``surface``. The previous id is restored
    on exit, so nested calls and thread pools do not leak ids.
    """
    rid = request_id or new_request_id(surface)
    token = _request_id.set(rid)
    try:
        yield rid
    finally:
        _request_id.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps ``request_id`` onto records so ``%(request_id)s`` always resolves."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id.get()  # type: ignore[attr-defined]
        return True


def install_request_id_filter(handlers: Iterable[logging.Handler]) -> None:
    for handler in handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())


def get_request_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not any(isinstance(f, RequestIdFilter) for f in logger.filters):
        logger.addFilter(RequestIdFilter())
    return logger

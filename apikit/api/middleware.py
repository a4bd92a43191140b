from __future__ import annotations

from typing import Awaitable, Callable, Sequence

from starlette.requests import Request
from starlette.responses import Response

Handler = Callable[[Request], Awaitable[Response]]

# A middleware takes the next handler in the chain and returns a handler that wraps it.
Middleware = Callable[[Handler], Handler]


def wrap_middleware(middlewares: Sequence[Middleware], handler: Handler) -> Handler:
    """Wrap ``handler`` so the first middleware listed is the outermost.

    ``wrap_middleware([m1, m2, m3], h)`` is ``m1(m2(m3(h)))``: m1 runs first on
    the way in and last on the way out.
    """

    wrapped = handler
    for mw in reversed(middlewares):
        wrapped = mw(wrapped)
    return wrapped

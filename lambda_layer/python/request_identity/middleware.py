"""Handler wrapping that attaches request identity to Lambda invocations.

A ``Handler`` is an async function of ``(event, context)`` returning a
result. A ``Middleware`` takes the next handler in the chain and returns a
new handler of the same shape, so several middlewares can be composed in
"onion" order.
"""

import asyncio
from contextlib import nullcontext
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Optional

from .config import IdentityConfig, load_config
from .encoding import generate_random_bytes
from .identity import (
    PARENT_ID_HEADERS,
    RequestIdentity,
    build_outbound_headers,
    normalize_header_names,
    resolve_identity,
)
from .logging_utils import get_logger
from .xray_utils import annotate_identity, identity_subsegment

Handler = Callable[[Any, Any], Awaitable[Any]]
Middleware = Callable[[Handler], Handler]


class RequestIdentityContext:
    """Lambda context carrying the resolved request identity.

    Attributes not defined here are read from the wrapped runtime context,
    so ``aws_request_id``, ``function_name`` and friends keep working.
    """

    def __init__(self, context: Any, request_identity: RequestIdentity):
        self._context = context
        self.request_identity = request_identity

    def __getattr__(self, name: str) -> Any:
        if name == '_context':
            raise AttributeError(name)
        return getattr(self._context, name)


def compose(*middlewares: Middleware) -> Middleware:
    """Chain middlewares so the first one listed runs outermost.

    ``compose(a, b)(handler)`` is ``a(b(handler))``.
    """
    def composed(handler: Handler) -> Handler:
        for middleware in reversed(middlewares):
            handler = middleware(handler)
        return handler
    return composed


def merge_identity_headers(result: Any, identity: RequestIdentity) -> Dict[str, Any]:
    """Return a copy of the result with identity headers merged in.

    Identity headers overwrite same-named headers set by the handler. When
    there is no parent id the parent headers are removed entirely.

    Args:
        result: Handler result (a dict, or None)
        identity: Resolved identity

    Returns:
        New result dict
    """
    result = dict(result or {})
    headers = dict(result.get('headers') or {})
    if not identity.parent_id:
        for name in PARENT_ID_HEADERS:
            headers.pop(name, None)
    headers.update(build_outbound_headers(identity))
    result['headers'] = headers
    return result


def request_identifying_middleware(
    next_handler: Handler,
    random_bytes: Callable[[], bytes] = generate_random_bytes,
    config: Optional[IdentityConfig] = None
) -> Handler:
    """Wrap a handler with request identity resolution.

    The wrapped handler receives a ``RequestIdentityContext`` whose
    ``request_identity`` holds the resolved identifiers, and the response
    headers are extended with the same identifiers. Exceptions from the
    wrapped handler propagate unchanged.

    Args:
        next_handler: Handler to wrap
        random_bytes: Source of 16 random bytes per call
        config: Configuration, loaded from the environment when omitted

    Returns:
        Wrapped handler
    """
    config = config or load_config()
    log = get_logger(__name__, level=config.log_level)

    @wraps(next_handler)
    async def handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
        trace_bytes = random_bytes()
        span_bytes = random_bytes()

        headers = (event or {}).get('headers')
        if config.normalize_header_case:
            headers = normalize_header_names(headers)

        identity = resolve_identity(headers, trace_bytes, span_bytes)
        log.bind(identity).debug(
            'Resolved request identity',
            parent_id=identity.parent_id,
            session_id=identity.session_id
        )

        tracing = identity_subsegment('request_identity') if config.enable_xray else nullcontext()
        with tracing as subsegment:
            annotate_identity(subsegment, identity)
            result = await next_handler(event, RequestIdentityContext(context, identity))

        return merge_identity_headers(result, identity)

    return handler


def lambda_entrypoint(handler: Handler) -> Callable[[Any, Any], Any]:
    """Adapt an async handler to the synchronous Lambda runtime interface."""
    @wraps(handler)
    def entrypoint(event: Dict[str, Any], context: Any) -> Any:
        return asyncio.run(handler(event, context))
    return entrypoint

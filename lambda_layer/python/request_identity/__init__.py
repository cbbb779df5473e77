"""Request Identity - Tracing identifier propagation for Lambda handlers."""

__version__ = "1.0.0"

from .identity import RequestIdentity, build_outbound_headers, resolve_identity  # noqa: F401
from .middleware import (  # noqa: F401
    RequestIdentityContext,
    compose,
    lambda_entrypoint,
    request_identifying_middleware,
)

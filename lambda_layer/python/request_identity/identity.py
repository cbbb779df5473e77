"""Request identity resolution from inbound headers."""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from .encoding import (
    ByteSource,
    bytes_to_hex_string,
    bytes_to_uuid,
    convert_maybe_hex_string_to_uuid,
    convert_maybe_uuid_to_hex_string,
)

CORRELATION_ID_HEADERS = ('correlation-id', 'x-correlation-id')
PARENT_ID_HEADERS = ('parent-id', 'x-parent-id', 'x-b3-parentspanid')
REQUEST_ID_HEADERS = ('request-id', 'x-request-id')
SESSION_ID_HEADERS = ('session-id', 'x-session-id')
SPAN_ID_HEADERS = ('span-id', 'x-span-id', 'x-b3-spanid')
TRACE_ID_HEADERS = ('trace-id', 'x-trace-id', 'x-b3-traceid')

SPAN_ID_BYTES = 8


@dataclass(frozen=True)
class InboundIds:
    """Identifiers supplied by the caller, any of which may be missing."""

    correlation_id: Optional[str] = None
    parent_id: Optional[str] = None
    request_id: Optional[str] = None
    session_id: Optional[str] = None
    span_id: Optional[str] = None
    trace_id: Optional[str] = None


@dataclass(frozen=True)
class RequestIdentity:
    """Resolved identifiers for one invocation."""

    correlation_id: str
    request_id: str
    session_id: str
    span_id: str
    trace_id: str
    parent_id: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        """Render with camelCase field names, omitting an absent parent id."""
        result = {'correlationId': self.correlation_id}
        if self.parent_id:
            result['parentId'] = self.parent_id
        result.update({
            'requestId': self.request_id,
            'sessionId': self.session_id,
            'spanId': self.span_id,
            'traceId': self.trace_id,
        })
        return result


def first_present(*values: Optional[str]) -> Optional[str]:
    """Return the first value that is a non-empty string, else None."""
    for value in values:
        if isinstance(value, str) and value:
            return value
    return None


def normalize_header_names(headers: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Lower-case header names.

    API Gateway REST events keep the casing the client sent, so
    ``X-Correlation-ID`` needs normalizing before lookup.

    Args:
        headers: Header mapping, may be None

    Returns:
        New dict with lower-cased keys
    """
    return {key.lower(): value for key, value in (headers or {}).items()}


def _lookup(headers: Mapping[str, Any], names: Tuple[str, ...]) -> Optional[str]:
    return first_present(*(headers.get(name) for name in names))


def extract_inbound_ids(headers: Optional[Mapping[str, Any]]) -> InboundIds:
    """Read identifiers from their header families.

    Lookup is case-sensitive; within a family the first non-empty value wins.

    Args:
        headers: Inbound header mapping, may be None

    Returns:
        InboundIds with whatever the caller supplied
    """
    headers = headers or {}
    return InboundIds(
        correlation_id=_lookup(headers, CORRELATION_ID_HEADERS),
        parent_id=_lookup(headers, PARENT_ID_HEADERS),
        request_id=_lookup(headers, REQUEST_ID_HEADERS),
        session_id=_lookup(headers, SESSION_ID_HEADERS),
        span_id=_lookup(headers, SPAN_ID_HEADERS),
        trace_id=_lookup(headers, TRACE_ID_HEADERS),
    )


def resolve_identity(
    headers: Optional[Mapping[str, Any]],
    trace_bytes: ByteSource,
    span_bytes: ByteSource
) -> RequestIdentity:
    """Complete a partial set of inbound identifiers.

    Correlation, request and session ids share one fallback chain rooted in
    ``trace_bytes``, so without caller-supplied values all three are the same
    identifier. The span id falls back to the first 8 bytes of
    ``span_bytes``. A parent id is never synthesized.

    Args:
        headers: Inbound header mapping, may be None
        trace_bytes: 16 random bytes for the trace-origin fallback
        span_bytes: 16 random bytes for the span-origin fallback

    Returns:
        Fully populated RequestIdentity
    """
    inbound = extract_inbound_ids(headers)
    trace_bytes = bytes(trace_bytes)
    span_bytes = bytes(span_bytes)

    # Shared tail of the correlation/request/session chains.
    transaction_id = first_present(
        inbound.correlation_id,
        convert_maybe_hex_string_to_uuid(inbound.trace_id),
    ) or bytes_to_uuid(trace_bytes)

    return RequestIdentity(
        correlation_id=transaction_id,
        parent_id=inbound.parent_id,
        request_id=first_present(inbound.request_id) or transaction_id,
        session_id=first_present(inbound.session_id) or transaction_id,
        span_id=first_present(inbound.span_id)
        or bytes_to_hex_string(span_bytes[:SPAN_ID_BYTES]),
        trace_id=first_present(
            inbound.trace_id,
            convert_maybe_uuid_to_hex_string(inbound.correlation_id),
        ) or bytes_to_hex_string(trace_bytes),
    )


def build_outbound_headers(identity: RequestIdentity) -> Dict[str, str]:
    """Build response headers carrying the resolved identifiers.

    Every name in each header family gets the same value. Parent id headers
    are left out when there is no parent id.

    Args:
        identity: Resolved identity

    Returns:
        Header dict
    """
    families = [
        (CORRELATION_ID_HEADERS, identity.correlation_id),
        (PARENT_ID_HEADERS, identity.parent_id),
        (REQUEST_ID_HEADERS, identity.request_id),
        (SESSION_ID_HEADERS, identity.session_id),
        (SPAN_ID_HEADERS, identity.span_id),
        (TRACE_ID_HEADERS, identity.trace_id),
    ]
    headers = {}
    for names, value in families:
        if value:
            for name in names:
                headers[name] = value
    return headers

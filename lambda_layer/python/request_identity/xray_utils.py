"""AWS X-Ray tracing utilities."""

from contextlib import contextmanager
from typing import Any, Iterator

from aws_xray_sdk import global_sdk_config
from aws_xray_sdk.core import xray_recorder
from aws_xray_sdk.core.models.dummy_entities import DummySubsegment
from aws_xray_sdk.core.models.subsegment import Subsegment

from .identity import RequestIdentity


@contextmanager
def identity_subsegment(name: str) -> Iterator[Any]:
    """Record a block as an X-Ray subsegment of the current segment.

    The subsegment is attached to the segment directly and never pushed on
    the recorder's entity stack, which is shared by every task running on
    the thread. Concurrent invocations on one event loop each get their own
    subsegment, and each closes only its own.

    Errors raised inside the block are recorded as metadata and re-raised.

    Args:
        name: Subsegment name

    Yields:
        The subsegment, or None when X-Ray is disabled or no segment is active
    """
    segment = xray_recorder.current_segment() if global_sdk_config.sdk_enabled() else None
    if segment is None:
        yield None
        return

    if segment.sampled:
        subsegment = Subsegment(name, 'local', segment)
    else:
        subsegment = DummySubsegment(segment, name)
    segment.add_subsegment(subsegment)

    try:
        yield subsegment
    except Exception as e:
        subsegment.put_metadata('error', str(e))
        raise
    finally:
        subsegment.close()
        xray_recorder.stream_subsegments()


def annotate_identity(subsegment: Any, identity: RequestIdentity) -> None:
    """Record the resolved identity on a subsegment.

    Correlation and trace ids are indexed annotations; the full bundle
    goes in as metadata.

    Args:
        subsegment: Subsegment yielded by ``identity_subsegment``, or None
        identity: Resolved identity
    """
    if subsegment is None:
        return

    subsegment.put_annotation('correlation_id', identity.correlation_id)
    subsegment.put_annotation('trace_id', identity.trace_id)
    subsegment.put_metadata('request_identity', identity.to_dict(), 'request_identity')

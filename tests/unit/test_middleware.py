"""Unit tests for the request identifying middleware."""

import asyncio
import os
import sys
from unittest.mock import Mock, patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../lambda_layer/python'))

from request_identity.config import IdentityConfig
from request_identity.identity import RequestIdentity
from request_identity.middleware import (
    RequestIdentityContext,
    compose,
    lambda_entrypoint,
    merge_identity_headers,
    request_identifying_middleware,
)

TRACE_BYTES = bytes(range(16))
SPAN_BYTES = bytes(range(16, 32))
TRACE_UUID = '00010203-0405-0607-0809-0a0b0c0d0e0f'


def fixed_bytes():
    """Return a byte source yielding the trace buffer then the span buffer."""
    buffers = iter([TRACE_BYTES, SPAN_BYTES])
    return lambda: next(buffers)


@pytest.fixture
def config():
    """Fixture for a configuration with X-Ray disabled."""
    return IdentityConfig(
        name='test',
        normalize_header_case=False,
        enable_xray=False,
        log_level='INFO'
    )


@pytest.fixture
def lambda_context():
    """Fixture for Lambda context."""
    context = Mock()
    context.function_name = 'identity-echo'
    context.aws_request_id = 'test-request-id'
    return context


def run(handler, event, context):
    return asyncio.run(handler(event, context))


class TestRequestIdentifyingMiddleware:
    """Tests for request_identifying_middleware."""

    def test_identity_attached_to_context(self, config, lambda_context):
        """Test the wrapped handler sees the resolved identity."""
        seen = {}

        async def inner(event, context):
            seen['identity'] = context.request_identity
            seen['aws_request_id'] = context.aws_request_id
            seen['event'] = event
            return {'statusCode': 200}

        event = {'headers': {'x-request-id': 'req-1'}}
        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        run(wrapped, event, lambda_context)

        assert seen['identity'].request_id == 'req-1'
        assert seen['identity'].correlation_id == TRACE_UUID
        assert seen['aws_request_id'] == 'test-request-id'
        assert seen['event'] is event

    def test_response_headers_merged(self, config, lambda_context):
        """Test identity headers are added next to handler headers."""
        async def inner(event, context):
            return {'statusCode': 201, 'headers': {'Content-Type': 'text/plain'}, 'body': 'ok'}

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        result = run(wrapped, {'headers': {}}, lambda_context)

        assert result['statusCode'] == 201
        assert result['body'] == 'ok'
        assert result['headers']['Content-Type'] == 'text/plain'
        for name in ('correlation-id', 'x-correlation-id', 'request-id', 'x-request-id',
                     'session-id', 'x-session-id'):
            assert result['headers'][name] == TRACE_UUID
        assert result['headers']['trace-id'] == result['headers']['x-b3-traceid']
        assert result['headers']['span-id'] == result['headers']['x-b3-spanid']
        assert 'parent-id' not in result['headers']

    def test_identity_headers_overwrite_handler_headers(self, config, lambda_context):
        """Test a handler-set identity header is replaced."""
        async def inner(event, context):
            return {'headers': {'x-trace-id': 'stale', 'x-b3-parentspanid': 'stale-parent'}}

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        result = run(wrapped, {'headers': {'trace-id': 'fresh'}}, lambda_context)

        assert result['headers']['x-trace-id'] == 'fresh'
        assert 'x-b3-parentspanid' not in result['headers']

    def test_handler_result_not_mutated(self, config, lambda_context):
        """Test the wrapped handler's result object is left alone."""
        original = {'statusCode': 200, 'headers': {'a': 'b'}}

        async def inner(event, context):
            return original

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        run(wrapped, {'headers': None}, lambda_context)

        assert original == {'statusCode': 200, 'headers': {'a': 'b'}}

    def test_missing_headers_key(self, config, lambda_context):
        """Test an event without a headers key."""
        async def inner(event, context):
            return {}

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        result = run(wrapped, {}, lambda_context)

        assert result['headers']['correlation-id'] == TRACE_UUID

    def test_handler_error_propagates(self, config, lambda_context):
        """Test exceptions from the wrapped handler are not caught."""
        async def inner(event, context):
            raise RuntimeError('boom')

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        with pytest.raises(RuntimeError, match='boom'):
            run(wrapped, {'headers': {}}, lambda_context)

    def test_fresh_identity_per_invocation(self, config, lambda_context):
        """Test each call generates its own identifiers."""
        async def inner(event, context):
            return {}

        wrapped = request_identifying_middleware(inner, config=config)

        first = run(wrapped, {'headers': {}}, lambda_context)
        second = run(wrapped, {'headers': {}}, lambda_context)

        assert first['headers']['correlation-id'] != second['headers']['correlation-id']
        assert first['headers']['span-id'] != second['headers']['span-id']

    def test_header_case_normalized_when_enabled(self, config, lambda_context):
        """Test mixed-case names match once normalization is on."""
        async def inner(event, context):
            return {}

        normalizing = IdentityConfig(
            name='test',
            normalize_header_case=True,
            enable_xray=False,
            log_level='INFO'
        )
        event = {'headers': {'X-Correlation-ID': 'abc'}}

        plain = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)
        normalized = request_identifying_middleware(
            inner, random_bytes=fixed_bytes(), config=normalizing
        )

        assert run(plain, event, lambda_context)['headers']['correlation-id'] == TRACE_UUID
        assert run(normalized, event, lambda_context)['headers']['correlation-id'] == 'abc'

    @patch('request_identity.middleware.annotate_identity')
    @patch('request_identity.middleware.identity_subsegment')
    def test_xray_annotation_when_enabled(self, mock_subsegment, mock_annotate, lambda_context):
        """Test the identity is recorded on X-Ray when enabled."""
        async def inner(event, context):
            return {}

        xray_config = IdentityConfig(
            name='test',
            normalize_header_case=False,
            enable_xray=True,
            log_level='INFO'
        )
        wrapped = request_identifying_middleware(
            inner, random_bytes=fixed_bytes(), config=xray_config
        )

        run(wrapped, {'headers': {}}, lambda_context)

        mock_subsegment.assert_called_once_with('request_identity')
        subsegment, identity = mock_annotate.call_args[0]
        assert subsegment is mock_subsegment.return_value.__enter__.return_value
        assert identity.correlation_id == TRACE_UUID

    @patch('request_identity.middleware.annotate_identity')
    @patch('request_identity.middleware.identity_subsegment')
    def test_no_xray_when_disabled(self, mock_subsegment, mock_annotate, config, lambda_context):
        """Test X-Ray is not touched when disabled."""
        async def inner(event, context):
            return {}

        wrapped = request_identifying_middleware(inner, random_bytes=fixed_bytes(), config=config)

        run(wrapped, {'headers': {}}, lambda_context)

        mock_subsegment.assert_not_called()
        mock_annotate.assert_called_once()
        assert mock_annotate.call_args[0][0] is None


class TestMergeIdentityHeaders:
    """Tests for merge_identity_headers."""

    def test_none_result(self):
        """Test a None result becomes a dict with headers."""
        identity = RequestIdentity(
            correlation_id='c', request_id='r', session_id='s', span_id='sp', trace_id='t'
        )

        result = merge_identity_headers(None, identity)

        assert result['headers']['x-correlation-id'] == 'c'

    def test_parent_kept_when_present(self):
        """Test parent headers are written when there is a parent id."""
        identity = RequestIdentity(
            correlation_id='c', request_id='r', session_id='s', span_id='sp',
            trace_id='t', parent_id='p'
        )

        result = merge_identity_headers({'headers': {'parent-id': 'old'}}, identity)

        assert result['headers']['parent-id'] == 'p'
        assert result['headers']['x-b3-parentspanid'] == 'p'


class TestRequestIdentityContext:
    """Tests for RequestIdentityContext."""

    def test_delegates_to_runtime_context(self, lambda_context):
        """Test unknown attributes come from the runtime context."""
        identity = RequestIdentity(
            correlation_id='c', request_id='r', session_id='s', span_id='sp', trace_id='t'
        )

        context = RequestIdentityContext(lambda_context, identity)

        assert context.request_identity is identity
        assert context.function_name == 'identity-echo'

    def test_missing_attribute(self):
        """Test AttributeError for attributes neither object has."""
        identity = RequestIdentity(
            correlation_id='c', request_id='r', session_id='s', span_id='sp', trace_id='t'
        )

        context = RequestIdentityContext(object(), identity)

        with pytest.raises(AttributeError):
            context.function_name


class TestCompose:
    """Tests for compose."""

    def test_first_middleware_runs_outermost(self, config, lambda_context):
        """Test composition order and identity visibility in outer layers."""
        calls = []

        def tagging(tag):
            def middleware(next_handler):
                async def handler(event, context):
                    calls.append(tag)
                    return await next_handler(event, context)
                return handler
            return middleware

        async def inner(event, context):
            calls.append('inner')
            return {'statusCode': 200, 'headers': {'x-request-id': 'stale'}}

        identifying = lambda h: request_identifying_middleware(
            h, random_bytes=fixed_bytes(), config=config
        )
        wrapped = compose(tagging('outer'), identifying, tagging('inner-mw'))(inner)

        result = run(wrapped, {'headers': {'request-id': 'req'}}, lambda_context)

        assert calls == ['outer', 'inner-mw', 'inner']
        assert result['headers']['x-request-id'] == 'req'

    def test_empty_compose(self):
        """Test composing nothing returns the handler unchanged."""
        async def inner(event, context):
            return {}

        assert compose()(inner) is inner


class TestLambdaEntrypoint:
    """Tests for lambda_entrypoint."""

    def test_runs_async_handler(self, lambda_context):
        """Test the synchronous adapter returns the handler result."""
        async def inner(event, context):
            return {'statusCode': 200, 'echo': event['value']}

        entrypoint = lambda_entrypoint(inner)

        assert entrypoint({'value': 42}, lambda_context) == {'statusCode': 200, 'echo': 42}

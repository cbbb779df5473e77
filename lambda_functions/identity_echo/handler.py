"""
Identity Echo Lambda Function

API Gateway proxy handler that reports the request identity resolved for
the call. Inbound tracing headers are honoured, missing ones are generated,
and the identifiers come back both in the body and in the response headers.
"""

import json
from typing import Any, Dict

from request_identity.config import load_config
from request_identity.logging_utils import get_logger
from request_identity.middleware import lambda_entrypoint, request_identifying_middleware

config = load_config()
logger = get_logger(__name__, level=config.log_level)


async def echo_identity(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Return the resolved request identity.

    Args:
        event: API Gateway proxy event
        context: Lambda context carrying ``request_identity``

    Returns:
        API Gateway proxy response
    """
    identity = context.request_identity
    logger.bind(identity).info('Identity echo invoked', path=event.get('path'))

    return {
        'statusCode': 200,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps({
            'requestIdentity': identity.to_dict(),
            'awsRequestId': getattr(context, 'aws_request_id', None)
        })
    }


handler = lambda_entrypoint(request_identifying_middleware(echo_identity, config=config))

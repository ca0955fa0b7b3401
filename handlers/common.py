"""Shared plumbing for the Lambda HTTP handlers."""
import json
import logging
from typing import Any, Dict, Optional

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

_RESERVED_ATTRS = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {
    'message', 'asctime'
}


class RequestError(Exception):
    """Client error mapped to an HTTP status."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any `extra` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def json_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {**CORS_HEADERS, 'Content-Type': 'application/json'},
        'body': json.dumps(body, default=str),
    }


def error_response(status_code: int, message: str, **extra: Any) -> Dict[str, Any]:
    return json_response(status_code, {'success': False, 'error': message, **extra})


def is_preflight(event: Dict[str, Any]) -> bool:
    method = event.get('httpMethod') or (
        event.get('requestContext', {}).get('http', {}).get('method')
    )
    return (method or '').upper() == 'OPTIONS'


def preflight_response() -> Dict[str, Any]:
    return {'statusCode': 200, 'headers': dict(CORS_HEADERS), 'body': ''}


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Decode the JSON body of an API Gateway proxy event.

    Raises:
        RequestError: If the body is not a JSON object
    """
    body = event.get('body')
    if body is None:
        return {}
    if isinstance(body, dict):
        return body
    try:
        data = json.loads(body) if body else {}
    except json.JSONDecodeError:
        raise RequestError('Request body must be valid JSON')
    if not isinstance(data, dict):
        raise RequestError('Request body must be a JSON object')
    return data


def get_user_id(event: Dict[str, Any]) -> Optional[str]:
    """Caller identity from the API Gateway authorizer, if any."""
    authorizer = event.get('requestContext', {}).get('authorizer') or {}
    claims = authorizer.get('claims') or authorizer.get('jwt', {}).get('claims') or {}
    return claims.get('sub') or authorizer.get('principalId')


def require_user_id(event: Dict[str, Any]) -> str:
    user_id = get_user_id(event)
    if not user_id:
        raise RequestError('Unauthorized', status_code=401)
    return user_id

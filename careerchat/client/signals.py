"""
Terminal signal of a reply stream.

The last fragment of a successful stream is the compact JSON string
``{"done":true,"userMessage":{...},"aiMessage":{...}}``. Anything else,
including JSON-looking text produced by the model, is a reply token.
"""

import json

from pydantic import ValidationError as PydanticValidationError

from ..models import SendMessageResponse
from .errors import StreamError

TERMINAL_PREFIX = '{"done":true'


def is_terminal_signal(fragment: str) -> bool:
    return fragment.startswith(TERMINAL_PREFIX)


def parse_terminal_signal(fragment: str) -> SendMessageResponse:
    """
    Decode the persisted records carried by the terminal signal.

    Raises:
        StreamError: If the payload is not valid JSON or lacks the records
    """
    try:
        payload = json.loads(fragment)
    except json.JSONDecodeError as e:
        raise StreamError("Malformed terminal signal", code="MALFORMED_TERMINAL") from e
    if not isinstance(payload, dict) or payload.get("done") is not True:
        raise StreamError("Malformed terminal signal", code="MALFORMED_TERMINAL")
    try:
        return SendMessageResponse.model_validate(payload)
    except PydanticValidationError as e:
        raise StreamError("Malformed terminal signal", code="MALFORMED_TERMINAL") from e

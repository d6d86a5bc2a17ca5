import json
import logging

logger = logging.getLogger("django_quiz")


class InvalidJSONBody(ValueError):
    pass


def load_json_body(request, expected_type=dict):
    """
    Decode the request body as JSON, raising InvalidJSONBody when it is not valid JSON of ``expected_type``.
    """
    try:
        data = json.loads(request.body.decode("utf-8") or "null")
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error(e)
        raise InvalidJSONBody("Invalid JSON") from e

    if not isinstance(data, expected_type):
        raise InvalidJSONBody("Invalid JSON")

    return data

import json
import logging

from common.context import RequestContext
from common.encoding import json_response
from common.logging import get_logger
from common.models import GreetingResponse, utc_now


def make_context():
    return RequestContext(request_id="req-42", client_ip="10.0.0.1:1234", method="GET", path="/greet")


def test_json_response_sets_headers_and_body():
    context = make_context()
    greeting = GreetingResponse(message="hi", request_id=context.request_id, timestamp=utc_now())

    response = json_response(context, greeting, get_logger("test", context))

    assert response.status_code == 200
    assert response.media_type == "application/json"
    assert response.headers["X-Request-ID"] == "req-42"
    body = json.loads(response.body)
    assert body["message"] == "hi"
    assert body["request_id"] == "req-42"


def test_unencodable_value_becomes_plain_500(caplog):
    context = make_context()

    response = json_response(context, {"value": object()}, get_logger("test", context))

    assert response.status_code == 500
    assert response.body == b"Internal Server Error"
    assert response.media_type == "text/plain"

    records = [r for r in caplog.records if r.getMessage() == "Failed to encode response"]
    assert len(records) == 1
    assert records[0].levelno == logging.ERROR
    assert records[0].request_id == "req-42"
    assert records[0].client_ip == "10.0.0.1:1234"
    assert records[0].processing_time >= 0

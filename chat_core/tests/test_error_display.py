from chat_core.domain.exceptions import (
    DEFAULT_SERVICE_ERROR,
    InvalidResponseError,
    NetworkError,
    invalid_response_message,
)
from chat_core.services.error_display import display_error, error_text


def test_error_text_by_kind():
    assert error_text(NetworkError(code="NETWORK_ERROR", message="timeout")) == "timeout"
    assert error_text({}) == DEFAULT_SERVICE_ERROR
    assert error_text({"error": "x"}) == '{"error": "x"}'
    assert error_text("") == DEFAULT_SERVICE_ERROR
    assert error_text(ValueError("boom")) == "boom"
    assert error_text(42) == DEFAULT_SERVICE_ERROR


def test_invalid_response_from_payload():
    assert InvalidResponseError.from_payload({}).message == DEFAULT_SERVICE_ERROR
    assert InvalidResponseError.from_payload("quota exceeded").message == "quota exceeded"
    err = InvalidResponseError.from_payload({"error": "bad"}, http_status=500)
    assert err.message == '{"error": "bad"}'
    assert err.code == "INVALID_RESPONSE"
    assert err.http_status == 500


def test_invalid_response_message_mentions_interceptor():
    plain = invalid_response_message(None)
    assert plain == "Response is in an incorrect format: null."
    with_interceptor = invalid_response_message({"a": 1}, has_interceptor=True, intercepted={"b": 2})
    assert with_interceptor.endswith('The response interceptor returned: {"b": 2}.')


def test_display_error_posts_service_message(sink):
    display_error(InvalidResponseError("broken"), sink)
    display_error(RuntimeError(""), sink, default_message="fallback")

    assert sink.events == [("error", "service", "broken"), ("error", "service", "fallback")]

import pytest
from pydantic import ValidationError

from adt_bridge.models import ProxyEnvelope, ProxyRequest


def test_scalar_values_in_params_and_headers_become_strings():
    request = ProxyRequest.model_validate_json(
        '{"path": "/sap/bc/adt/activation",'
        ' "params": {"method": "activate", "preauditRequested": true, "maxResults": 20, "ratio": 1.5},'
        ' "headers": {"X-Dry-Run": false}}'
    )

    assert request.params == {
        "method": "activate",
        "preauditRequested": "true",
        "maxResults": "20",
        "ratio": "1.5",
    }
    assert request.headers == {"X-Dry-Run": "false"}


def test_scalar_body_and_defaults():
    request = ProxyRequest.model_validate_json('{"path": "/x", "body": 42}')

    assert request.body == "42"
    assert request.method == "GET"
    assert request.headers is None
    assert request.params is None


def test_null_param_value_is_rejected():
    with pytest.raises(ValidationError):
        ProxyRequest.model_validate_json('{"path": "/x", "params": {"a": null}}')


def test_envelope_omits_error_unless_set():
    assert ProxyEnvelope(status=200, body="ok").to_content() == {
        "status": 200,
        "headers": {},
        "body": "ok",
    }
    assert ProxyEnvelope(status=500, error="boom").to_content()["error"] == "boom"

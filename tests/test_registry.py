import json

import pytest

from core.errors import GatewayError, NotFoundError, PreconditionError
from core.registry import Envelope, ToolCallResult, ToolRegistry, unwrap
from core.schema import integer, optional, string

from tests.conftest import API_KEY


@pytest.fixture
def tools(redactor):
    registry = ToolRegistry(redactor)
    calls = []

    def echo(params):
        calls.append(params)
        return {"data": params}

    def page(params):
        return {"data": [1, 2], "nextPageToken": "tok"}

    def fail_gateway(params):
        raise GatewayError("Quo API 500 Internal Server Error: boom", status=500)

    def refuse(params):
        raise PreconditionError("Nothing to do", f"key was {API_KEY}")

    def crash(params):
        raise RuntimeError(f"bad state with {API_KEY}")

    registry.register("echo", "Echo", {"name": string(), "n": optional(integer(maximum=3))}, echo)
    registry.register("page", "Page", {}, page, envelope=Envelope.RAW)
    registry.register("bye", "Bye", {}, lambda params: "Gone.", envelope=Envelope.MESSAGE)
    registry.register("fail", "Fail", {}, fail_gateway)
    registry.register("refuse", "Refuse", {}, refuse)
    registry.register("crash", "Crash", {}, crash)
    registry.calls = calls
    return registry


class TestRegistration:
    def test_duplicate_names_are_rejected(self, tools):
        with pytest.raises(ValueError, match="already registered"):
            tools.register("echo", "again", {}, lambda params: None)

    def test_lookup(self, tools):
        assert "echo" in tools
        assert tools.get("echo").description == "Echo"
        assert tools.names()[:3] == ["echo", "page", "bye"]
        assert len(tools) == 6

    def test_unknown_tool(self, tools):
        with pytest.raises(NotFoundError, match="Unknown tool: nope"):
            tools.dispatch("nope", {})


class TestDispatch:
    def test_success_unwraps_data(self, tools):
        result = tools.dispatch("echo", {"name": "x"})
        assert result.is_error is False
        assert json.loads(result.first_text) == {"name": "x"}
        assert result.first_text == json.dumps({"name": "x"}, indent=2)

    def test_raw_envelope_is_verbatim(self, tools):
        result = tools.dispatch("page", {})
        assert json.loads(result.first_text) == {"data": [1, 2], "nextPageToken": "tok"}

    def test_message_envelope(self, tools):
        assert tools.dispatch("bye", {}).first_text == "Gone."

    def test_validation_failure_is_returned_not_raised(self, tools):
        result = tools.dispatch("echo", {"name": "x", "n": 9})
        assert result.is_error is True
        error = json.loads(result.first_text)["error"]
        assert error["message"] == "Invalid parameters for echo"
        assert error["details"] == "n: must be <= 3"
        assert tools.calls == []

    def test_only_declared_params_reach_the_handler(self, tools):
        tools.dispatch("echo", {"name": "x", "extra": "y"})
        assert tools.calls == [{"name": "x"}]

    def test_gateway_error_becomes_error_result(self, tools):
        result = tools.dispatch("fail", {})
        assert result.is_error is True
        assert result.first_text == "Quo API 500 Internal Server Error: boom"

    def test_precondition_error_is_redacted(self, tools):
        result = tools.dispatch("refuse", {})
        assert result.is_error is True
        error = json.loads(result.first_text)["error"]
        assert error["message"] == "Nothing to do"
        assert API_KEY not in result.first_text

    def test_unexpected_exception_is_contained_and_redacted(self, tools):
        result = tools.dispatch("crash", {})
        assert result.is_error is True
        assert result.first_text.startswith("Unexpected error in crash: bad state with")
        assert API_KEY not in result.first_text


class TestToolCallResult:
    def test_success_envelope_omits_is_error(self):
        assert ToolCallResult.text("ok").to_dict() == {"content": [{"type": "text", "text": "ok"}]}

    def test_error_envelope(self):
        assert ToolCallResult.error("bad").to_dict() == {
            "content": [{"type": "text", "text": "bad"}],
            "isError": True,
        }


class TestUnwrap:
    def test_data_envelope(self):
        assert unwrap(Envelope.DATA, {"data": {"id": 1}}) == {"id": 1}

    def test_data_envelope_without_data_key(self):
        assert unwrap(Envelope.DATA, {"success": True}) == {"success": True}
        assert unwrap(Envelope.DATA, [1, 2]) == [1, 2]

    def test_raw_envelope(self):
        assert unwrap(Envelope.RAW, {"data": 1}) == {"data": 1}

from types import SimpleNamespace

import httpx
import openai
import pytest

from taskforce.backends.claude import ClaudeBackend
from taskforce.backends.echo import EchoBackend
from taskforce.backends.factory import build_backend
from taskforce.backends.gpt import OpenAIBackend
from taskforce.backends.ollama import OllamaBackend, describe_tools
from taskforce.errors import BackendError, ConfigurationError, UnsupportedOperationError
from taskforce.schemas.messages import Message, ToolCall, ToolResult
from taskforce.utils.settings import LLMConfig


class FakeEndpoint:
    """Stands in for ``chat.completions`` / ``messages``: replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.payloads = []

    async def create(self, **payload):
        self.payloads.append(payload)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeStream:
    def __init__(self, events):
        self.events = list(events)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for event in self.events:
            yield event


def openai_client(*responses):
    endpoint = FakeEndpoint(*responses)
    return SimpleNamespace(chat=SimpleNamespace(completions=endpoint)), endpoint


def openai_message(content=None, tool_calls=None):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content, tool_calls=tool_calls))]
    )


def openai_chunk(content=None, tool_calls=None):
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))]
    )


def openai_fragment(index, call_id=None, name=None, arguments=None):
    return SimpleNamespace(
        index=index, id=call_id, function=SimpleNamespace(name=name, arguments=arguments)
    )


def claude_client(*responses):
    endpoint = FakeEndpoint(*responses)
    return SimpleNamespace(messages=endpoint), endpoint


async def _drain(stream):
    return [part async for part in stream]


@pytest.mark.asyncio
async def test_openai_reply_is_normalized(helpers):
    call = SimpleNamespace(
        id="call_1",
        type="function",
        function=SimpleNamespace(name="lookup", arguments='{"value": "x"}'),
    )
    client, endpoint = openai_client(openai_message(tool_calls=[call]), openai_message("done"))
    backend = OpenAIBackend(client=client, self_reflection=False, temperature=0.2)

    result = await backend.call("sys", "go", tools=[helpers.tool("lookup")])

    assert result == "done"
    first, second = endpoint.payloads
    assert first["model"] == "gpt-4o-mini"
    assert first["temperature"] == 0.2
    assert first["messages"][0] == {"role": "system", "content": "sys"}
    assert first["tools"][0]["function"]["name"] == "lookup"
    assert second["messages"][2]["tool_calls"][0]["id"] == "call_1"
    assert second["messages"][3] == {
        "role": "tool",
        "tool_call_id": "call_1",
        "content": "lookup:x",
    }


@pytest.mark.asyncio
async def test_openai_failure_carries_history():
    error = openai.APIConnectionError(
        message="connection refused",
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"),
    )
    client, _ = openai_client(error)
    backend = OpenAIBackend(client=client, self_reflection=False)

    with pytest.raises(BackendError) as excinfo:
        await backend.call("sys", "hello")

    assert "openai" in str(excinfo.value)
    assert [m.content for m in excinfo.value.history] == ["hello"]


@pytest.mark.asyncio
async def test_openai_stream_translates_chunks(helpers):
    first = FakeStream(
        [
            SimpleNamespace(choices=[]),
            openai_chunk(content="Checking. "),
            openai_chunk(tool_calls=[openai_fragment(0, "call_1", "lookup", "")]),
            openai_chunk(tool_calls=[openai_fragment(0, arguments='{"value":')]),
            openai_chunk(tool_calls=[openai_fragment(0, arguments=' "x"}')]),
        ]
    )
    second = FakeStream([openai_chunk(content="Found x.")])
    client, endpoint = openai_client(first, second)
    backend = OpenAIBackend(client=client)

    parts = await _drain(backend.call_stream("sys", "go", tools=[helpers.tool("lookup")]))

    assert parts == ["Checking. ", "Found x."]
    assert first.closed and second.closed
    assert all(payload["stream"] is True for payload in endpoint.payloads)
    assert endpoint.payloads[1]["messages"][-1]["content"] == "lookup:x"


def test_claude_wire_merges_consecutive_tool_results():
    call_a = ToolCall(id="toolu_a", name="lookup", arguments='{"value": "a"}')
    call_b = ToolCall(id="toolu_b", name="lookup", arguments="")
    messages = [
        Message.user("go"),
        Message.assistant("Looking up.", [call_a, call_b]),
        Message.tool(ToolResult("toolu_a", "lookup", "A")),
        Message.tool(ToolResult("toolu_b", "lookup", "B")),
        Message.assistant(""),
    ]

    wire = ClaudeBackend._to_wire(messages)

    assert wire[0] == {"role": "user", "content": "go"}
    assert wire[1]["content"][0] == {"type": "text", "text": "Looking up."}
    assert wire[1]["content"][1]["input"] == {"value": "a"}
    assert wire[1]["content"][2]["input"] == {}
    assert wire[2] == {
        "role": "user",
        "content": [
            {"type": "tool_result", "tool_use_id": "toolu_a", "content": "A"},
            {"type": "tool_result", "tool_use_id": "toolu_b", "content": "B"},
        ],
    }
    assert wire[3] == {"role": "assistant", "content": "(empty response)"}


@pytest.mark.asyncio
async def test_claude_reply_is_normalized(helpers):
    tool_turn = SimpleNamespace(
        content=[
            SimpleNamespace(type="text", text="Checking."),
            SimpleNamespace(type="tool_use", id="toolu_1", name="lookup", input={"value": "x"}),
        ]
    )
    final_turn = SimpleNamespace(content=[SimpleNamespace(type="text", text="It is x.")])
    client, endpoint = claude_client(tool_turn, final_turn)
    backend = ClaudeBackend(client=client, self_reflection=False)

    assert await backend.call("sys", "go", tools=[helpers.tool("lookup")]) == "It is x."

    payload = endpoint.payloads[0]
    assert payload["system"] == "sys"
    assert payload["max_tokens"] == 1000
    assert payload["tools"][0]["input_schema"]["properties"] == {"value": {"type": "string"}}
    assert endpoint.payloads[1]["messages"][-1]["content"][0]["content"] == "lookup:x"


@pytest.mark.asyncio
async def test_claude_stream_reassembles_input_json(helpers):
    def block_start(index, block):
        return SimpleNamespace(type="content_block_start", index=index, content_block=block)

    def block_delta(index, delta):
        return SimpleNamespace(type="content_block_delta", index=index, delta=delta)

    first = FakeStream(
        [
            SimpleNamespace(type="message_start"),
            block_start(0, SimpleNamespace(type="text")),
            block_delta(0, SimpleNamespace(type="text_delta", text="One moment.")),
            block_start(1, SimpleNamespace(type="tool_use", id="toolu_1", name="lookup")),
            block_delta(1, SimpleNamespace(type="input_json_delta", partial_json='{"value"')),
            block_delta(1, SimpleNamespace(type="input_json_delta", partial_json=': "y"}')),
            SimpleNamespace(type="message_stop"),
        ]
    )
    second = FakeStream([block_delta(0, SimpleNamespace(type="text_delta", text="It is y."))])
    client, _ = claude_client(first, second)
    backend = ClaudeBackend(client=client)

    parts = await _drain(backend.call_stream("sys", "go", tools=[helpers.tool("lookup")]))

    assert parts == ["One moment.", "It is y."]
    tool_message = backend.history.all()[2]
    assert (tool_message.tool_call_id, tool_message.content) == ("toolu_1", "lookup:y")


@pytest.mark.asyncio
async def test_ollama_describes_tools_in_system_prompt(helpers):
    client, endpoint = openai_client(openai_message("ok"))
    backend = OllamaBackend(client=client, self_reflection=False)

    await backend.call("sys", "go", tools=[helpers.tool("lookup")])

    payload = endpoint.payloads[0]
    assert "tools" not in payload
    assert payload["model"] == "llama3"
    assert "Name: lookup" in payload["messages"][0]["content"]
    with pytest.raises(UnsupportedOperationError):
        backend.call_stream("sys", "go")


def test_describe_tools_lists_parameters(helpers):
    text = describe_tools([helpers.tool("lookup")])

    assert "Description: Echo tool lookup" in text
    assert "Parameter Type: object" in text
    assert "{'tool_call':'lookup','arguments': {'value': 'example'}}" in text
    assert describe_tools([]) == ""


def test_factory_builds_configured_backends(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")

    openai_backend = build_backend(
        LLMConfig(provider="openai", model="gpt-4o", api_key_env="TEST_OPENAI_KEY")
    )
    echo_backend = build_backend(LLMConfig(provider="echo", parallel_tool_calls=True))

    assert isinstance(openai_backend, OpenAIBackend)
    assert openai_backend.model == "gpt-4o"
    assert isinstance(echo_backend, EchoBackend)
    assert echo_backend.parallel_tool_calls is False


def test_factory_rejects_unknown_provider():
    config = LLMConfig.model_construct(
        provider="mystery",
        model=None,
        temperature=None,
        max_tokens=None,
        parallel_tool_calls=False,
        api_key_env=None,
        base_url=None,
    )
    with pytest.raises(ConfigurationError):
        build_backend(config)

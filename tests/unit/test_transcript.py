from taskforce.memory.transcript import Transcript, split_into_chunks
from taskforce.schemas.messages import Message, ToolCall, ToolResult


def test_split_into_chunks_front_loads_remainder():
    items = list(range(7))

    assert split_into_chunks(items, 3) == [[0, 1, 2], [3, 4], [5, 6]]
    assert split_into_chunks([1], 3) == [[1], [], []]
    assert split_into_chunks([], 3) == [[], [], []]


def _exchange():
    call = ToolCall(id="c1", name="researcher", arguments='{"task": "dig"}')
    return [
        Message.assistant(None, [call]),
        Message.tool(ToolResult("c1", "researcher", "facts")),
    ]


def test_tool_exchanges_pairs_calls_with_results():
    transcript = Transcript(
        [Message.user("hi"), *_exchange(), Message.assistant("answer"), Message.tool(
            ToolResult("stray", "x", "orphan")
        )]
    )

    exchanges = transcript.tool_exchanges()

    assert [m.role for m in exchanges] == ["assistant", "tool"]
    assert exchanges[1].tool_call_id == "c1"


def test_seed_splices_prior_turns_around_tool_exchanges():
    transcript = Transcript([Message.user("old question"), *_exchange(), Message.assistant("old")])
    history = [
        Message.user("u1"),
        Message.assistant("a1"),
        Message.user("u2"),
        Message.assistant("a2"),
    ]

    transcript.seed(history)

    contents = [m.content for m in transcript.all()]
    assert contents == ["u1", "a1", None, "facts", "u2", "a2"]
    assert len(transcript) == 6


def test_reset_replaces_turns():
    transcript = Transcript([Message.user("a"), Message.user("b")])

    transcript.reset([Message.user("c")])
    assert [m.content for m in transcript.all()] == ["c"]
    transcript.reset()
    assert transcript.all() == []

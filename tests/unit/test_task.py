import pytest

from taskforce.agents.base import Agent
from taskforce.errors import NoAgentError
from taskforce.workflows.task import Task


def test_prompt_carries_context_and_expected_output():
    task = Task(description="Write a haiku", expected_output="Three lines")

    prompt = task.prompt("previous output\n-----------------\n")

    assert prompt.is_task
    assert prompt.task == "Write a haiku"
    assert prompt.input == "previous output\n-----------------\n\nExpected Output: Three lines"


@pytest.mark.asyncio
async def test_bound_agent_takes_precedence(scripted):
    bound = Agent(role="Poet", goal="write", backend=scripted(replies=["from bound"]))
    supplied = Agent(role="Critic", goal="judge", backend=scripted(replies=["from supplied"]))
    task = Task(description="Write", expected_output="Poem", agent=bound)

    assert await task.execute(agent=supplied) == "from bound"
    assert supplied.backend.requests == []


@pytest.mark.asyncio
async def test_supplied_agent_used_when_unbound(scripted):
    supplied = Agent(role="Critic", goal="judge", backend=scripted(replies=["verdict"]))
    task = Task(description="Judge", expected_output="Verdict")

    assert await task.execute(agent=supplied, context="draft\n") == "verdict"
    sent = supplied.backend.requests[0]["messages"][-1].content
    assert "draft\n\nExpected Output: Verdict" in sent


@pytest.mark.asyncio
async def test_task_without_any_agent_fails():
    with pytest.raises(NoAgentError):
        await Task(description="Orphan", expected_output="Nothing").execute()

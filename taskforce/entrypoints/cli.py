from __future__ import annotations

import argparse
import asyncio
import sys
from contextlib import aclosing

from taskforce.agents.base import Agent
from taskforce.backends.factory import build_backend
from taskforce.errors import ConfigurationError
from taskforce.memory.embeddings import OpenAIEmbedder
from taskforce.telemetry.logging import setup_logging
from taskforce.utils.settings import AppConfig, load_config
from taskforce.workflows.orchestrator import Orchestrator
from taskforce.workflows.task import Task


def build_orchestrator(config: AppConfig) -> Orchestrator:
    agents = {
        agent.role: Agent(role=agent.role, goal=agent.goal, backend=build_backend(config.llm))
        for agent in config.agents
    }
    tasks = []
    for task in config.tasks:
        if task.agent and task.agent not in agents:
            raise ConfigurationError(
                f"Task '{task.description[:60]}' names unknown agent '{task.agent}'. "
                f"Known agents: {', '.join(agents)}"
            )
        tasks.append(
            Task(
                description=task.description,
                expected_output=task.expected_output,
                agent=agents[task.agent] if task.agent else None,
            )
        )
    embedder = None
    if config.memory.enabled:
        embedder = OpenAIEmbedder(model=config.memory.embedding_model)
    return Orchestrator(
        agents=list(agents.values()),
        tasks=tasks,
        llm=build_backend(config.llm),
        process=config.agency.process,
        memory=config.memory.enabled,
        resources=config.memory.resources or None,
        out_file=config.agency.out_file,
        allow_delegation=config.agency.allow_delegation,
        embedder=embedder,
    )


async def run(args: argparse.Namespace, config: AppConfig) -> None:
    orchestrator = build_orchestrator(config)
    if not args.prompt:
        result = await orchestrator.kickoff()
        print(f"\n{result.output}\n\nRun time: {result.run_time}")
        return

    if args.stream:
        stream = await orchestrator.execute_stream(args.prompt)
        async with aclosing(stream) as parts:
            async for part in parts:
                sys.stdout.write(part)
                sys.stdout.flush()
        sys.stdout.write("\n")
    else:
        print(await orchestrator.execute(args.prompt))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a team of agents on the configured tasks.")
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Chat with the manager instead of running the configured tasks.",
    )
    parser.add_argument("--env", default="base", help="Config environment (base, dev, prod, ...).")
    parser.add_argument("--config-dir", default="configs", help="Directory holding the YAML configs.")
    parser.add_argument("--stream", action="store_true", help="Stream the chat answer.")
    args = parser.parse_args()

    config = load_config(args.env, args.config_dir)
    setup_logging(config.logging.level)
    asyncio.run(run(args, config))


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging

from .console import Console
from .models import AgentRecord
from .providers import BaseAgentService

logger = logging.getLogger("interpreter-client")


def find_agent(service: BaseAgentService, name: str) -> AgentRecord | None:
    """First agent whose name matches exactly, in the order the service lists them."""
    for agent in service.list_agents():
        if agent.name == name:
            return agent
    return None


def resolve_agent(
    service: BaseAgentService,
    name: str,
    *,
    model: str,
    instructions: str,
    console: Console,
) -> AgentRecord:
    """Reuse the agent called `name`, or create it with the code interpreter tool."""
    console.say(f"Setting up agent '{name}'...")

    agent = find_agent(service, name)
    if agent is None:
        console.say(f"Creating new agent '{name}'...")
        agent = service.create_agent(name=name, model=model, instructions=instructions)
        logger.info("Created agent %s (%s) with model %s", agent.name, agent.id, model)
        console.say(f"✓ Agent created: {agent.name}")
    else:
        logger.info("Reusing agent %s (%s)", agent.name, agent.id)
        console.say(f"✓ Connected to existing agent: {agent.name}")
    console.say()
    return agent

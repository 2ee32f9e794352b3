"""
Agent Chat - free-form conversation with a named agent

Responsibilities:
- Hold the running message list of one agent conversation
- Seed a conversation from the agent's profile (system prompt)
- Run one turn through the model and report token usage

Design principles:
- Explicit AgentChatSession object; callers own and key their sessions
- A turn works on a copy: a failed model call leaves the session unchanged
- Context grows across turns until the session is reset
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from surveyflow.contracts import ROLE_ASSISTANT, ROLE_USER
from surveyflow.core.chat_responder import NO_REPLY
from surveyflow.utils.helpers import utc_timestamp, validate_model_client

logger = logging.getLogger(__name__)

ROLE_SYSTEM = "system"
DEFAULT_AGENT = "orchestrator"


@dataclass(frozen=True)
class AgentProfile:
    """How a conversation with one agent starts"""
    name: str
    system_prompt: str = ""


@dataclass
class AgentChatSession:
    """
    Mutable conversation state for one agent chat.

    Attributes:
        agent: Profile the conversation was seeded from
        messages: [{'role', 'content'}, ...] sent to the model, oldest first
        started_at: When the conversation was (re)started
        turns: Completed user/assistant exchanges
    """
    agent: AgentProfile
    messages: List[Dict[str, str]] = field(default_factory=list)
    started_at: str = ""
    turns: int = 0

    @classmethod
    def start(cls, agent: AgentProfile) -> "AgentChatSession":
        messages = []
        if agent.system_prompt:
            messages.append({'role': ROLE_SYSTEM, 'content': agent.system_prompt})
        return cls(agent=agent, messages=messages, started_at=utc_timestamp())

    def copy(self) -> "AgentChatSession":
        return AgentChatSession(
            agent=self.agent,
            messages=[dict(m) for m in self.messages],
            started_at=self.started_at,
            turns=self.turns,
        )


class AgentChat:
    """Run agent conversations on the local model"""

    def __init__(self, model_client, agents: Optional[Mapping[str, AgentProfile]] = None,
                 max_tokens: int = 512, temperature: float = 0.7):
        """
        Args:
            model_client: Client with generate_chat(..., return_diagnostics=True)
            agents: Profiles by name (a single prompt-less orchestrator if None)
        """
        validate_model_client(model_client, required=('generate_chat', 'is_loaded'))
        self.model_client = model_client
        self.agents = dict(agents or {DEFAULT_AGENT: AgentProfile(DEFAULT_AGENT)})
        self.max_tokens = max_tokens
        self.temperature = temperature

        logger.info(f"Agent Chat initialized: {sorted(self.agents)}")

    def new_session(self, agent_name: str = DEFAULT_AGENT) -> AgentChatSession:
        """
        Raises:
            ValueError: If no agent has that name
        """
        agent = self.agents.get(agent_name)
        if agent is None:
            raise ValueError(f"Agent not found: {agent_name}")
        return AgentChatSession.start(agent)

    def send(self, session: AgentChatSession,
             prompt: str) -> Tuple[AgentChatSession, Dict[str, Any]]:
        """
        One user turn.

        Returns:
            (updated session, output) where output is
            {'messages': [...], 'message': {...}, 'usage': {...}}

        Raises:
            ValueError: If prompt is blank
        """
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("prompt must not be empty")

        working = session.copy()
        working.messages.append({'role': ROLE_USER, 'content': prompt})

        result = self.model_client.generate_chat(
            working.messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            return_diagnostics=True,
        )
        content = (result.get('text') or "").strip()
        if not content:
            logger.warning(f"Empty reply from agent {session.agent.name}")
            content = NO_REPLY

        message = {'role': ROLE_ASSISTANT, 'content': content}
        working.messages.append(message)
        working.turns += 1

        diagnostics = result.get('diagnostics') or {}
        usage = {
            'prompt_tokens': int(diagnostics.get('prompt_tokens', 0)),
            'completion_tokens': int(diagnostics.get('completion_tokens', 0)),
            'total_tokens': int(diagnostics.get('total_tokens', 0)),
        }
        logger.info(
            f"Agent {session.agent.name} turn {working.turns}: "
            f"{len(working.messages)} message(s) in context, {usage['total_tokens']} tokens"
        )
        return working, {
            'messages': [dict(m) for m in working.messages],
            'message': dict(message),
            'usage': usage,
        }

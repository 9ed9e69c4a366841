"""Agent loop: model calls, tool execution and the tool-use protocol."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from providers import ChatOptions, ProviderClient, create_provider
from security import (
    Deny,
    FetchUrl,
    RequireApproval,
    SaveData,
    SecurityAction,
    SecurityConfig,
    SecurityGate,
    ToolCallAction,
    describe_action,
)

from .config import AgentConfig, load_agent_config, load_security_config
from .context import ContextWindowManager
from .conversation import Conversation
from .exceptions import AgentError, ApprovalRequired, SecurityDenied, ToolExecutionError
from .memory import MemoryStore
from .parser import ResponseParser
from .prompt import build_system_prompt
from .schemas import AgentResponse, Message, ToolCall, ToolDefinition
from .session import SessionContext, create_session
from .tools import ToolExecutor, create_executor

logger = logging.getLogger(__name__)

RESULT_SEPARATOR = "\n\n---\n\n"


def format_tool_result(name: str, result: str, chunk_size: int) -> List[str]:
    """Render one tool result, split into numbered parts when long.

    Args:
        name: Tool name
        result: Tool output or inline error text
        chunk_size: Maximum characters per part

    Returns:
        One entry per part, in order
    """
    if len(result) <= chunk_size:
        return [f"Tool '{name}' returned:\n{result}"]

    total = (len(result) + chunk_size - 1) // chunk_size
    parts = []
    for index in range(total):
        chunk = result[index * chunk_size:(index + 1) * chunk_size]
        part = f"[Part {index + 1}/{total}]\n{chunk}"
        if index == 0:
            part = f"Tool '{name}' (split into {total} parts):\n{part}"
        parts.append(part)
    return parts


def derive_actions(call: ToolCall) -> List[SecurityAction]:
    """Security actions implied by a tool call.

    Every call is a tool action carrying the raw arguments. A ``url``
    argument is also a fetch, and save_note also writes data under its
    title.
    """
    actions: List[SecurityAction] = [ToolCallAction(name=call.name, args=call.arguments)]
    arguments = call.arguments if isinstance(call.arguments, dict) else {}

    url = arguments.get("url")
    if isinstance(url, str) and url:
        actions.append(FetchUrl(url=url))

    if call.name == "save_note":
        title = arguments.get("title")
        if isinstance(title, str):
            actions.append(SaveData(key=title))

    return actions


@dataclass
class TurnState:
    """Progress of one user turn, kept while it waits for approval."""

    iterations: int = 0
    executed: int = 0
    tool_calls: List[ToolCall] = field(default_factory=list)
    awaiting: Optional[str] = None
    user_message: str = ""


class AgentLoop:
    """Multi-turn tool-use loop over a provider and a tool executor.

    Each user turn:
    1. Sends the conversation to the model
    2. Parses tool calls from the reply; none means the reply is final
    3. Checks every call with the security gate, then executes them
    4. Appends the reply and the tool results, trims, and asks again

    At most ``max_iterations`` tool rounds run per turn; after that the
    last reply is returned as is.
    """

    def __init__(
        self,
        provider: ProviderClient,
        executor: ToolExecutor,
        session: SessionContext,
        config: Optional[AgentConfig] = None,
        parser: Optional[ResponseParser] = None,
        context: Optional[ContextWindowManager] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the agent loop.

        Args:
            provider: Model backend
            executor: Tool executor
            session: Session state owned by this loop
            config: Agent settings
            parser: Tool call parser
            context: Context window manager
            client: Shared HTTP client passed to providers created later
        """
        self.provider = provider
        self.executor = executor
        self.session = session
        self.config = config or AgentConfig()
        self.parser = parser or ResponseParser()
        self.context = context or ContextWindowManager()
        self._client = client
        self._turn: Optional[TurnState] = None

        self.session.conversation.set_system_prompt(self._system_prompt())

    @classmethod
    def create(
        cls,
        config: Optional[AgentConfig] = None,
        security_config: Optional[SecurityConfig] = None,
        session_id: str = "default",
        provider: Optional[ProviderClient] = None,
        client: Optional[httpx.AsyncClient] = None,
        **session_kwargs: Any,
    ) -> "AgentLoop":
        """Build an agent with a fresh session and the built-in tools.

        Args:
            config: Agent settings; defaults are read from the environment
            security_config: Security policy for the session
            session_id: Session identifier
            provider: Model backend; created from config.provider when omitted
            client: Shared HTTP client for providers and web tools
            **session_kwargs: Passed to create_session (store, embedder)
        """
        config = config or AgentConfig()
        session = create_session(session_id, config, security_config, **session_kwargs)
        executor = create_executor(session.store, session.conversation.history, client)
        if provider is None:
            provider = create_provider(config.provider, client=client)
        return cls(provider, executor, session, config, client=client)

    @property
    def conversation(self) -> Conversation:
        return self.session.conversation

    @property
    def security(self) -> SecurityGate:
        return self.session.security

    @property
    def memory(self) -> MemoryStore:
        return self.session.memory

    def _system_prompt(self) -> str:
        return build_system_prompt(self.config.system_prompt, self.executor.definitions())

    def _chat_options(self) -> ChatOptions:
        return ChatOptions(
            model=self.config.provider.model,
            max_tokens=self.config.effective_max_tokens,
            temperature=self.config.effective_temperature,
            tools=[definition.to_openai_format() for definition in self.executor.definitions()],
        )

    async def _call_model(self) -> str:
        messages = self.conversation.history()
        logger.debug(f"Calling {self.provider.name} with {len(messages)} messages")
        return await self.provider.chat(messages, self._chat_options())

    async def chat(self, message: str) -> str:
        """Process a user message and return the final answer.

        Raises:
            ProviderError: The model backend failed
            SecurityDenied: A requested action was refused
            ApprovalRequired: Actions await approve()/deny(); call resume()
        """
        response = await self.chat_verbose(message)
        return response.content

    async def chat_verbose(self, message: str) -> AgentResponse:
        """Process a user message, returning the answer and executed tool calls.

        Raises:
            ProviderError: The model backend failed
            SecurityDenied: A requested action was refused
            ApprovalRequired: Actions await approve()/deny(); call resume()
        """
        if self._turn is not None:
            logger.warning("Abandoning a turn that was waiting for approval")

        self.conversation.add_user(message)
        turn = TurnState(user_message=message)
        self._turn = turn

        try:
            response = await self._call_model()
        except Exception:
            self._turn = None
            raise

        return await self._run(turn, response)

    async def resume(self) -> AgentResponse:
        """Continue a turn suspended by ApprovalRequired.

        Raises:
            AgentError: If no turn is waiting
            ApprovalRequired: If actions of the step are still pending
            SecurityDenied: If an action of the step was denied
        """
        turn = self._turn
        if turn is None or turn.awaiting is None:
            raise AgentError("No turn is waiting for approval")

        response = turn.awaiting
        turn.awaiting = None
        return await self._run(turn, response)

    async def _run(self, turn: TurnState, response: str) -> AgentResponse:
        try:
            while turn.iterations < self.config.max_iterations:
                calls = self.parser.parse(response)
                if not calls:
                    break

                allowed = self._within_limit(turn, calls)
                self._authorize(turn, response, allowed)

                results = await self._execute_step(turn, calls, allowed)

                self.conversation.add_assistant(response)
                self.conversation.add_user(RESULT_SEPARATOR.join(results))
                self.conversation.replace(self.context.maybe_trim(self.conversation.messages))

                turn.iterations += 1
                response = await self._call_model()
            else:
                logger.warning(
                    f"Reached {self.config.max_iterations} tool iterations, returning last response"
                )
        except ApprovalRequired:
            raise
        except Exception:
            self._turn = None
            raise

        return await self._finish(turn, response)

    def _within_limit(self, turn: TurnState, calls: List[ToolCall]) -> List[ToolCall]:
        remaining = max(self.security.config.max_tool_calls - turn.executed, 0)
        if len(calls) > remaining:
            logger.warning(
                f"Tool call limit reached: running {remaining} of {len(calls)} calls"
            )
        return calls[:remaining]

    def _authorize(self, turn: TurnState, response: str, calls: List[ToolCall]) -> None:
        """Check every call of the step before any of them runs."""
        pending: Dict[str, SecurityAction] = {}
        for call in calls:
            for action in derive_actions(call):
                decision = self.security.check(action)
                if isinstance(decision, Deny):
                    raise SecurityDenied(decision.reason, call.name)
                if isinstance(decision, RequireApproval):
                    pending[decision.action_id] = action

        if pending:
            for action in pending.values():
                self.security.request_approval(action)
            turn.awaiting = response
            raise ApprovalRequired(
                {identity: describe_action(action) for identity, action in pending.items()}
            )

    async def _execute_step(
        self,
        turn: TurnState,
        calls: List[ToolCall],
        allowed: List[ToolCall],
    ) -> List[str]:
        if self.config.parallel_tools and len(allowed) > 1:
            outputs = list(await asyncio.gather(*(self._run_tool(call) for call in allowed)))
        else:
            outputs = [await self._run_tool(call) for call in allowed]

        turn.executed += len(allowed)
        turn.tool_calls.extend(allowed)

        limit = self.security.config.max_tool_calls
        for call in calls[len(allowed):]:
            outputs.append(f"Error: Tool call limit reached ({limit} per message), '{call.name}' was not run")

        results: List[str] = []
        for call, output in zip(calls, outputs):
            results.extend(format_tool_result(call.name, output, self.config.tool_result_chunk_size))
        return results

    async def _run_tool(self, call: ToolCall) -> str:
        logger.info(f"Executing tool: {call.name} with args: {call.arguments}")
        try:
            execution = self.executor.execute(call.name, call.arguments)
            if self.config.tool_timeout is not None:
                return await asyncio.wait_for(execution, self.config.tool_timeout)
            return await execution
        except asyncio.TimeoutError:
            logger.warning(f"Tool {call.name} timed out after {self.config.tool_timeout}s")
            return f"Error: Tool '{call.name}' timed out after {self.config.tool_timeout} seconds"
        except ToolExecutionError as e:
            logger.warning(f"Tool {call.name} failed: {e}")
            return f"Error: {e}"

    async def _finish(self, turn: TurnState, response: str) -> AgentResponse:
        self._turn = None
        self.conversation.add_assistant(response)
        await self.conversation.save()

        if self.memory.config.auto_save:
            await self.memory.save(
                f"User: {turn.user_message}\nAssistant: {response}",
                {"type": "conversation", "session_id": self.session.session_id},
            )

        return AgentResponse(content=response, tool_calls=turn.tool_calls)

    @property
    def awaiting_approval(self) -> bool:
        return self._turn is not None and self._turn.awaiting is not None

    def approve(self, action_id: str) -> None:
        """Approve a pending action.

        Raises:
            KeyError: If no pending action has this id
        """
        self.security.approve(action_id)

    def deny(self, action_id: str) -> None:
        """Deny a pending action.

        Raises:
            KeyError: If no pending action has this id
        """
        self.security.deny(action_id)

    def pending_approvals(self) -> Dict[str, str]:
        return {identity: describe_action(action) for identity, action in self.security.pending().items()}

    def clear_history(self) -> None:
        self._turn = None
        self.conversation.clear()

    def get_history(self) -> List[Message]:
        return self.conversation.history()

    def get_tools(self) -> List[ToolDefinition]:
        return self.executor.definitions()

    def get_config(self) -> Dict[str, Any]:
        """Current settings without secrets."""
        return self.config.model_dump(
            mode="json",
            exclude={"provider": {"api_key"}, "memory": {"embedding_api_key"}},
        )

    async def execute_tool(self, name: str, arguments: Any = None) -> str:
        """Run a tool directly, bypassing the model and the security gate.

        Raises:
            ToolExecutionError: If the tool fails
        """
        return await self.executor.execute(name, arguments)

    def _rebuild_provider(self) -> None:
        self.provider = create_provider(self.config.provider, client=self._client)

    def set_provider(self, name: str, api_key: Optional[str] = None) -> None:
        self.config.provider = self.config.provider.model_copy(
            update={"provider": name, "api_key": api_key}
        )
        self._rebuild_provider()

    def set_model(self, model: str) -> None:
        self.config.provider = self.config.provider.model_copy(update={"model": model})

    def set_api_key(self, api_key: str) -> None:
        self.config.provider = self.config.provider.model_copy(update={"api_key": api_key})
        self._rebuild_provider()

    def update_config(self, raw: str) -> None:
        """Replace the agent settings from a JSON document.

        Raises:
            ParseError: If the document is malformed; settings are unchanged
        """
        self.config = load_agent_config(raw)
        self.memory.reconfigure(self.config.memory)
        self._rebuild_provider()
        self.conversation.set_system_prompt(self._system_prompt())
        logger.info(f"Configuration updated: provider={self.config.provider.provider}")

    def update_security_config(self, raw: str) -> None:
        """Replace the security policy from a JSON document.

        Raises:
            ParseError: If the document is malformed; the policy is unchanged
        """
        self.security.update_config(load_security_config(raw))


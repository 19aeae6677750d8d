from __future__ import annotations

import itertools
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from .config import Settings
from .models import (
    AgentRecord,
    ContentItem,
    ImageFileContent,
    MessageRecord,
    MessageRole,
    RunRecord,
    RunUpdate,
    RunStatus,
    StreamEvent,
    TextContent,
    TextDelta,
    ThreadRecord,
    UnsupportedContent,
)

logger = logging.getLogger("interpreter-client")

CODE_INTERPRETER = "code_interpreter"


class BaseAgentService:
    """
    The slice of the agent service this client consumes.

    Every method is a blocking round-trip; nothing is cached client-side.
    """

    def list_agents(self) -> Iterable[AgentRecord]:  # pragma: no cover - interface only
        raise NotImplementedError

    def create_agent(self, *, name: str, model: str, instructions: str) -> AgentRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def upload_file(self, path: Path) -> str:  # pragma: no cover - interface only
        raise NotImplementedError

    def get_file_content(self, file_id: str) -> bytes:  # pragma: no cover - interface only
        raise NotImplementedError

    def create_thread(self, file_ids: Optional[List[str]] = None) -> ThreadRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def create_message(self, thread_id: str, text: str) -> MessageRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def create_run(self, thread_id: str, agent_id: str) -> RunRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def get_run(self, thread_id: str, run_id: str) -> RunRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def cancel_run(self, thread_id: str, run_id: str) -> RunRecord:  # pragma: no cover - interface only
        raise NotImplementedError

    def list_messages(self, thread_id: str) -> Iterable[MessageRecord]:  # pragma: no cover - interface only
        """Messages of a thread, newest first."""
        raise NotImplementedError

    def stream_run(self, thread_id: str, agent_id: str) -> Iterator[StreamEvent]:  # pragma: no cover - interface only
        raise NotImplementedError


class StubAgentService(BaseAgentService):
    """
    Deterministic in-memory service for offline sessions and tests.

    Runs complete as soon as they are created. The agent's reply echoes the
    request, and a request mentioning a chart or plot also yields a
    generated image. Every call is appended to `calls` as (method, args).
    """

    IMAGE_BYTES = b"\x89PNG\r\n\x1a\nstub-image"

    def __init__(self, agents: Optional[List[AgentRecord]] = None) -> None:
        self.agents: List[AgentRecord] = list(agents or [])
        self.files: Dict[str, bytes] = {}
        self.threads: Dict[str, ThreadRecord] = {}
        self.messages: Dict[str, List[MessageRecord]] = {}
        self.runs: Dict[str, RunRecord] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self._ids = itertools.count(1)

    def _new_id(self, prefix: str) -> str:
        return f"{prefix}_stub{next(self._ids):08d}"

    def _record(self, method: str, *args: Any) -> None:
        self.calls.append((method, args))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def list_agents(self) -> Iterable[AgentRecord]:
        self._record("list_agents")
        return list(self.agents)

    def create_agent(self, *, name: str, model: str, instructions: str) -> AgentRecord:
        self._record("create_agent", name, model)
        agent = AgentRecord(
            id=self._new_id("asst"),
            name=name,
            model=model,
            instructions=instructions,
            tools=[CODE_INTERPRETER],
        )
        self.agents.append(agent)
        return agent

    def upload_file(self, path: Path) -> str:
        self._record("upload_file", Path(path))
        file_id = self._new_id("assistant-file")
        self.files[file_id] = Path(path).read_bytes()
        return file_id

    def get_file_content(self, file_id: str) -> bytes:
        self._record("get_file_content", file_id)
        try:
            return self.files[file_id]
        except KeyError:
            raise LookupError(f"No file with id {file_id}") from None

    def create_thread(self, file_ids: Optional[List[str]] = None) -> ThreadRecord:
        self._record("create_thread", list(file_ids or []))
        thread = ThreadRecord(id=self._new_id("thread"), file_ids=list(file_ids or []))
        self.threads[thread.id] = thread
        self.messages[thread.id] = []
        return thread

    def create_message(self, thread_id: str, text: str) -> MessageRecord:
        self._record("create_message", thread_id, text)
        message = MessageRecord(
            id=self._new_id("msg"),
            role=MessageRole.USER,
            content=[TextContent(text=text)],
        )
        self.messages[thread_id].append(message)
        return message

    def _reply_content(self, thread_id: str, request: str) -> List[ContentItem]:
        attached = self.threads[thread_id].file_ids
        lines = [f"You asked: {request}"]
        if attached:
            lines.append(f"Attached files: {', '.join(attached)}")
        content: List[ContentItem] = [TextContent(text="\n".join(lines))]
        lowered = request.lower()
        if "chart" in lowered or "plot" in lowered:
            image_id = self._new_id("assistant-img")
            self.files[image_id] = self.IMAGE_BYTES
            content.append(ImageFileContent(file_id=image_id))
        return content

    def _complete(self, thread_id: str, run: RunRecord) -> None:
        last_request = ""
        for message in reversed(self.messages[thread_id]):
            if message.role is MessageRole.USER:
                last_request = " ".join(
                    item.text for item in message.content if isinstance(item, TextContent)
                )
                break
        self.messages[thread_id].append(
            MessageRecord(
                id=self._new_id("msg"),
                role=MessageRole.AGENT,
                run_id=run.id,
                content=self._reply_content(thread_id, last_request),
            )
        )
        run.status = RunStatus.COMPLETED

    def create_run(self, thread_id: str, agent_id: str) -> RunRecord:
        self._record("create_run", thread_id, agent_id)
        run = RunRecord(id=self._new_id("run"), thread_id=thread_id, status=RunStatus.QUEUED)
        self.runs[run.id] = run
        self._complete(thread_id, run)
        return run.model_copy()

    def get_run(self, thread_id: str, run_id: str) -> RunRecord:
        self._record("get_run", thread_id, run_id)
        return self.runs[run_id].model_copy()

    def cancel_run(self, thread_id: str, run_id: str) -> RunRecord:
        self._record("cancel_run", thread_id, run_id)
        run = self.runs[run_id]
        if run.status.is_active:
            run.status = RunStatus.CANCELLED
        return run.model_copy()

    def list_messages(self, thread_id: str) -> Iterable[MessageRecord]:
        self._record("list_messages", thread_id)
        return list(reversed(self.messages[thread_id]))

    def stream_run(self, thread_id: str, agent_id: str) -> Iterator[StreamEvent]:
        self._record("stream_run", thread_id, agent_id)
        run = RunRecord(id=self._new_id("run"), thread_id=thread_id, status=RunStatus.QUEUED)
        self.runs[run.id] = run
        yield RunUpdate(run=run.model_copy())
        self._complete(thread_id, run)
        reply = self.messages[thread_id][-1]
        for item in reply.content:
            if isinstance(item, TextContent):
                for word in item.text.split(" "):
                    yield TextDelta(text=word + " ")
        yield RunUpdate(run=run.model_copy())


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


class AzureAgentService(BaseAgentService):
    """Azure AI Foundry persistent agents, through the azure-ai-agents SDK."""

    def __init__(self, endpoint: str, credential: Any = None) -> None:
        from azure.ai.agents import AgentsClient

        if credential is None:
            from azure.identity import DefaultAzureCredential

            credential = DefaultAzureCredential()
        self.client = AgentsClient(endpoint=endpoint, credential=credential)

    @staticmethod
    def _agent(agent: Any) -> AgentRecord:
        return AgentRecord(
            id=agent.id,
            name=agent.name,
            model=agent.model,
            instructions=agent.instructions,
            tools=[_enum_value(tool.type) for tool in (agent.tools or [])],
        )

    @staticmethod
    def _run(run: Any) -> RunRecord:
        last_error = getattr(run, "last_error", None)
        return RunRecord(
            id=run.id,
            thread_id=run.thread_id,
            status=RunStatus(_enum_value(run.status)),
            last_error=getattr(last_error, "message", None) if last_error else None,
        )

    @staticmethod
    def _content(item: Any) -> ContentItem:
        from azure.ai.agents.models import MessageImageFileContent, MessageTextContent

        if isinstance(item, MessageTextContent):
            return TextContent(text=item.text.value)
        if isinstance(item, MessageImageFileContent):
            return ImageFileContent(file_id=item.image_file.file_id)
        return UnsupportedContent(kind=_enum_value(getattr(item, "type", type(item).__name__)))

    def _message(self, message: Any) -> MessageRecord:
        return MessageRecord(
            id=message.id,
            role=MessageRole(_enum_value(message.role)),
            run_id=message.run_id,
            content=[self._content(item) for item in (message.content or [])],
        )

    def list_agents(self) -> Iterable[AgentRecord]:
        for agent in self.client.list_agents():
            yield self._agent(agent)

    def create_agent(self, *, name: str, model: str, instructions: str) -> AgentRecord:
        from azure.ai.agents.models import CodeInterpreterTool

        agent = self.client.create_agent(
            model=model,
            name=name,
            instructions=instructions,
            tools=CodeInterpreterTool().definitions,
        )
        return self._agent(agent)

    def upload_file(self, path: Path) -> str:
        from azure.ai.agents.models import FilePurpose

        info = self.client.files.upload_and_poll(file_path=str(path), purpose=FilePurpose.AGENTS)
        return info.id

    def get_file_content(self, file_id: str) -> bytes:
        return b"".join(self.client.files.get_content(file_id))

    def create_thread(self, file_ids: Optional[List[str]] = None) -> ThreadRecord:
        if not file_ids:
            thread = self.client.threads.create()
            return ThreadRecord(id=thread.id)

        from azure.ai.agents.models import CodeInterpreterToolResource, ToolResources

        resources = ToolResources(code_interpreter=CodeInterpreterToolResource(file_ids=list(file_ids)))
        thread = self.client.threads.create(tool_resources=resources)
        return ThreadRecord(id=thread.id, file_ids=list(file_ids))

    def create_message(self, thread_id: str, text: str) -> MessageRecord:
        from azure.ai.agents.models import MessageRole as SdkMessageRole

        message = self.client.messages.create(thread_id=thread_id, role=SdkMessageRole.USER, content=text)
        return self._message(message)

    def create_run(self, thread_id: str, agent_id: str) -> RunRecord:
        return self._run(self.client.runs.create(thread_id=thread_id, agent_id=agent_id))

    def get_run(self, thread_id: str, run_id: str) -> RunRecord:
        return self._run(self.client.runs.get(thread_id=thread_id, run_id=run_id))

    def cancel_run(self, thread_id: str, run_id: str) -> RunRecord:
        return self._run(self.client.runs.cancel(thread_id=thread_id, run_id=run_id))

    def list_messages(self, thread_id: str) -> Iterable[MessageRecord]:
        from azure.ai.agents.models import ListSortOrder

        for message in self.client.messages.list(thread_id=thread_id, order=ListSortOrder.DESCENDING):
            yield self._message(message)

    def stream_run(self, thread_id: str, agent_id: str) -> Iterator[StreamEvent]:
        from azure.ai.agents.models import MessageDeltaChunk, ThreadRun

        with self.client.runs.stream(thread_id=thread_id, agent_id=agent_id) as stream:
            for _event_type, event_data, _ in stream:
                if isinstance(event_data, MessageDeltaChunk):
                    if event_data.text:
                        yield TextDelta(text=event_data.text)
                elif isinstance(event_data, ThreadRun):
                    yield RunUpdate(run=self._run(event_data))


def build_service(settings: Settings) -> BaseAgentService:
    """Factory that chooses the concrete service implementation."""
    if settings.provider_name == "stub":
        logger.info("Using in-memory stub agent service")
        return StubAgentService()
    return AzureAgentService(endpoint=settings.project_endpoint)

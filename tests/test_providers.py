from __future__ import annotations

from types import SimpleNamespace

import pytest
from azure.ai.agents.models import (
    ListSortOrder,
    MessageDeltaChunk,
    MessageImageFileContent,
    MessageTextContent,
    ThreadMessage,
    ThreadRun,
)

from conftest import make_settings
from interpreter_client.models import (
    ImageFileContent,
    MessageRole,
    RunStatus,
    RunUpdate,
    TextContent,
    TextDelta,
    UnsupportedContent,
)
from interpreter_client.providers import AzureAgentService, StubAgentService, build_service


class FakeRuns:
    def __init__(self) -> None:
        self.requests = []

    def get(self, *, thread_id: str, run_id: str):
        self.requests.append((thread_id, run_id))
        return SimpleNamespace(
            id=run_id,
            thread_id=thread_id,
            status=SimpleNamespace(value="failed"),
            last_error=SimpleNamespace(code="server_error", message="sandbox crashed"),
        )


def bare_azure_service(client) -> AzureAgentService:
    # Skip __init__ so no credential or SDK client is created.
    service = AzureAgentService.__new__(AzureAgentService)
    service.client = client
    return service


def test_build_service_returns_stub_for_stub_provider() -> None:
    assert isinstance(build_service(make_settings(provider_name="stub")), StubAgentService)


def test_azure_run_is_converted_to_run_record() -> None:
    runs = FakeRuns()
    service = bare_azure_service(SimpleNamespace(runs=runs))

    run = service.get_run("thread_1", "run_1")

    assert runs.requests == [("thread_1", "run_1")]
    assert run.status is RunStatus.FAILED
    assert run.last_error == "sandbox crashed"


def test_azure_agents_are_listed_in_service_order() -> None:
    agents = [
        SimpleNamespace(id="asst_1", name="a", model="gpt-4o", instructions="", tools=[SimpleNamespace(type="code_interpreter")]),
        SimpleNamespace(id="asst_2", name="b", model="gpt-4o", instructions=None, tools=None),
    ]
    service = bare_azure_service(SimpleNamespace(list_agents=lambda: iter(agents)))

    records = list(service.list_agents())

    assert [r.id for r in records] == ["asst_1", "asst_2"]
    assert records[0].tools == ["code_interpreter"]
    assert records[1].tools == []


def test_unknown_sdk_content_becomes_unsupported() -> None:
    service = bare_azure_service(client=None)
    message = SimpleNamespace(
        id="msg_1",
        role="assistant",
        run_id="run_1",
        content=[SimpleNamespace(type="file_path")],
    )

    record = service._message(message)

    assert record.role is MessageRole.AGENT
    assert record.content == [UnsupportedContent(kind="file_path")]


def test_get_file_content_joins_chunks() -> None:
    files = SimpleNamespace(get_content=lambda file_id: iter([b"ab", b"cd"]))
    service = bare_azure_service(SimpleNamespace(files=files))

    assert service.get_file_content("assistant-img") == b"abcd"


def test_stub_stream_reports_run_and_text() -> None:
    service = StubAgentService()
    thread = service.create_thread()
    service.create_message(thread.id, "hello there")

    events = list(service.stream_run(thread.id, "asst_1"))

    assert events[0].type == "run_update"
    assert events[-1].type == "run_update"
    assert events[-1].run.status is RunStatus.COMPLETED
    text = "".join(e.text for e in events if e.type == "text_delta")
    assert text.strip() == "You asked: hello there"


### Azure SDK models ###########################################################


class FakeThreads:
    def __init__(self) -> None:
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        return SimpleNamespace(id="thread_az")


def test_thread_with_file_attaches_it_to_code_interpreter() -> None:
    threads = FakeThreads()
    service = bare_azure_service(SimpleNamespace(threads=threads))

    thread = service.create_thread(["assistant-file1"])

    assert thread.id == "thread_az"
    assert thread.file_ids == ["assistant-file1"]
    resources = threads.requests[0]["tool_resources"]
    assert resources.code_interpreter.file_ids == ["assistant-file1"]


def test_thread_without_file_sends_no_tool_resources() -> None:
    threads = FakeThreads()
    service = bare_azure_service(SimpleNamespace(threads=threads))

    thread = service.create_thread([])

    assert threads.requests == [{}]
    assert thread.file_ids == []


def test_messages_are_listed_newest_first_with_sdk_content() -> None:
    requests = []
    newest = ThreadMessage(
        {
            "id": "msg_2",
            "role": "assistant",
            "run_id": "run_1",
            "content": [
                {"type": "text", "text": {"value": "Here is the chart.", "annotations": []}},
                {"type": "image_file", "image_file": {"file_id": "assistant-img1"}},
            ],
        }
    )
    oldest = ThreadMessage(
        {
            "id": "msg_1",
            "role": "user",
            "run_id": None,
            "content": [{"type": "text", "text": {"value": "plot it", "annotations": []}}],
        }
    )

    def list_messages(**kwargs):
        requests.append(kwargs)
        return iter([newest, oldest])

    service = bare_azure_service(SimpleNamespace(messages=SimpleNamespace(list=list_messages)))

    records = list(service.list_messages("thread_1"))

    assert requests == [{"thread_id": "thread_1", "order": ListSortOrder.DESCENDING}]
    assert [r.id for r in records] == ["msg_2", "msg_1"]
    assert records[0].role is MessageRole.AGENT
    assert records[0].content == [TextContent(text="Here is the chart."), ImageFileContent(file_id="assistant-img1")]
    assert records[1].role is MessageRole.USER


@pytest.mark.parametrize(
    "item, expected",
    [
        (MessageTextContent({"type": "text", "text": {"value": "hi", "annotations": []}}), TextContent(text="hi")),
        (MessageImageFileContent({"type": "image_file", "image_file": {"file_id": "x"}}), ImageFileContent(file_id="x")),
    ],
)
def test_sdk_content_types_are_mapped(item, expected) -> None:
    assert AzureAgentService._content(item) == expected


class FakeStream:
    def __init__(self, events) -> None:
        self.events = events
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.closed = True

    def __iter__(self):
        return iter(self.events)


def test_stream_maps_deltas_and_run_updates() -> None:
    chunk = MessageDeltaChunk(
        {
            "id": "msg_1",
            "object": "thread.message.delta",
            "delta": {"role": "assistant", "content": [{"index": 0, "type": "text", "text": {"value": "Hel"}}]},
        }
    )
    started = ThreadRun({"id": "run_1", "thread_id": "thread_1", "status": "in_progress"})
    finished = ThreadRun({"id": "run_1", "thread_id": "thread_1", "status": "completed"})
    stream = FakeStream(
        [
            ("thread.run.in_progress", started, None),
            ("thread.message.delta", chunk, None),
            ("thread.run.step.created", SimpleNamespace(id="step_1"), None),
            ("thread.run.completed", finished, None),
        ]
    )
    requests = []

    def open_stream(**kwargs):
        requests.append(kwargs)
        return stream

    service = bare_azure_service(SimpleNamespace(runs=SimpleNamespace(stream=open_stream)))

    events = list(service.stream_run("thread_1", "asst_1"))

    assert requests == [{"thread_id": "thread_1", "agent_id": "asst_1"}]
    assert isinstance(events[0], RunUpdate)
    assert events[0].run.status is RunStatus.IN_PROGRESS
    assert events[1] == TextDelta(text="Hel")
    assert isinstance(events[2], RunUpdate)
    assert events[2].run.status is RunStatus.COMPLETED
    assert len(events) == 3
    assert stream.closed

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional

from .agents import resolve_agent
from .completion import CompletionStrategy, build_completion
from .config import Settings
from .console import Console
from .downloads import download_all
from .files import list_spreadsheets, select_file, upload_with_progress
from .models import (
    AgentRecord,
    ContentItem,
    ImageFileContent,
    MessageRecord,
    MessageRole,
    RunRecord,
    RunStatus,
    TextContent,
    ThreadRecord,
    TurnResult,
    UnsupportedContent,
    UploadedFile,
)
from .providers import BaseAgentService

logger = logging.getLogger("interpreter-client")

EXIT_COMMAND = "exit"
AFFIRMATIVE = {"y", "yes"}


@dataclass
class Session:
    """
    Everything a turn needs: the service, the agent, the one thread and the
    (at most one) uploaded file. Written once at startup, read by every turn.
    """

    service: BaseAgentService
    agent: AgentRecord
    thread: ThreadRecord
    completion: CompletionStrategy
    console: Console
    uploaded: Optional[UploadedFile] = None
    workdir: Path = field(default_factory=Path.cwd)


def open_thread(service: BaseAgentService, uploaded: Optional[UploadedFile], console: Console) -> ThreadRecord:
    """Create the session thread, attaching the uploaded file to the code interpreter."""
    if uploaded is None:
        return service.create_thread()
    thread = service.create_thread([uploaded.file_id])
    console.say("✓ Thread created with file attached")
    console.say()
    return thread


def open_session(
    settings: Settings,
    service: BaseAgentService,
    console: Console,
    *,
    workdir: Optional[Path] = None,
) -> Session:
    """Resolve the agent, offer a spreadsheet upload and open the thread."""
    workdir = Path(workdir or Path.cwd())
    agent = resolve_agent(
        service,
        settings.agent_name,
        model=settings.model,
        instructions=settings.instructions,
        console=console,
    )

    files = list_spreadsheets(workdir)
    chosen = select_file(console, files, require=settings.require_file)
    uploaded = None
    if chosen is not None:
        uploaded = upload_with_progress(service, chosen, console, settings.upload_progress_interval)

    thread = open_thread(service, uploaded, console)
    logger.info("Opened thread %s (attached file: %s)", thread.id, uploaded.file_id if uploaded else None)
    return Session(
        service=service,
        agent=agent,
        thread=thread,
        completion=build_completion(settings),
        console=console,
        uploaded=uploaded,
        workdir=workdir,
    )


def collect_run_messages(messages: Iterable[MessageRecord], run_id: str) -> List[MessageRecord]:
    """
    Agent messages produced by `run_id`, scanning newest first.

    Matching messages are collected until, after at least one match, a
    message from another role or another run is met. Non-matching messages
    before the first match are skipped.
    """
    collected: List[MessageRecord] = []
    for message in messages:
        if message.role is MessageRole.AGENT and message.run_id == run_id:
            collected.append(message)
        elif collected:
            break
    return collected


def content_kind(item: ContentItem) -> str:
    """'text', 'image' or 'skipped' for unsupported kinds."""
    if isinstance(item, TextContent):
        return "text"
    if isinstance(item, ImageFileContent):
        return "image"
    if isinstance(item, UnsupportedContent):
        return "skipped"
    raise TypeError(f"Unhandled content item {type(item).__name__}")


def render_response(session: Session, run: RunRecord) -> TurnResult:
    """Print the run's reply and gather its generated image ids."""
    console = session.console
    messages = collect_run_messages(session.service.list_messages(session.thread.id), run.id)
    result = TurnResult(run=run)

    echo_text = not session.completion.echoes_text
    for index, message in enumerate(messages):
        if index == 0 and echo_text:
            console.write("Agent: ")
        for item in message.content:
            kind = content_kind(item)
            if kind == "text":
                result.texts.append(item.text)
                if echo_text:
                    console.say(item.text)
            elif kind == "image":
                result.image_file_ids.append(item.file_id)
                console.say()
                console.say(f"[Generated image: {item.file_id}]")
            else:
                logger.debug("Skipping unsupported content kind %s", item.kind)
    return result


def offer_download(session: Session, result: TurnResult) -> None:
    if not result.image_file_ids:
        return
    console = session.console
    console.say()
    console.say(f"{len(result.image_file_ids)} file(s) generated. Download to current directory? (y/n)")
    answer = console.ask("> ")
    if answer is None or answer.strip().lower() not in AFFIRMATIVE:
        return
    result.downloads = download_all(session.service, result.image_file_ids, console, directory=session.workdir)


def handle_turn(session: Session, request: str) -> TurnResult:
    """Post `request`, wait for the run, show the reply and offer downloads."""
    console = session.console
    console.say()
    console.say("=== Agent Response ===")

    session.service.create_message(session.thread.id, request)
    run = session.completion.execute(session.service, session.thread.id, session.agent.id, console)
    if run.status is not RunStatus.COMPLETED:
        logger.warning("Run %s ended with status %s: %s", run.id, run.status.value, run.last_error)
        detail = f": {run.last_error}" if run.last_error else ""
        console.say(f"Run ended with status '{run.status.value}'{detail}")

    result = render_response(session, run)
    offer_download(session, result)
    return result


def read_request(console: Console) -> Optional[str]:
    """
    Prompt until a non-blank request arrives.

    Returns None when the operator types 'exit' or input runs out.
    """
    while True:
        console.say("What would you like the code interpreter to do? (type 'exit' to quit)")
        raw = console.ask("> ")
        if raw is None:
            return None
        if not raw.strip():
            console.say("No request provided.")
            console.say()
            continue
        if raw.strip().lower() == EXIT_COMMAND:
            return None
        return raw


def run_session(session: Session) -> Optional[TurnResult]:
    """Request loop: one turn per request until 'exit'. Returns the last turn, if any."""
    console = session.console
    last: Optional[TurnResult] = None
    while True:
        request = read_request(console)
        if request is None:
            console.say()
            console.say("Exiting...")
            break
        last = handle_turn(session, request)
        console.say()
        console.say("--- Ready for next request ---")
        console.say()
    return last

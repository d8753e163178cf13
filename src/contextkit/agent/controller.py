"""Agentic file selection.

The controller gives the model a bounded number of turns. On each turn the
model either investigates the workspace through the command sandbox or
finishes with a list of files. Anything unexpected (transport failure,
malformed arguments, an unknown tool, running out of turns) ends in the
fallback set: the active file followed by the heuristic pre-selection.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol

from contextkit.agent.prompts import (
    build_legacy_prompt,
    build_selection_prompt,
    get_system_prompt,
)
from contextkit.cache import TTLCache
from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.config import SelectionConfig
from contextkit.context.truncation import truncate_with_marker
from contextkit.exceptions import OperationCancelled, SelectionArgumentError
from contextkit.llm.base import LLMProvider, LLMResponse, Message, ToolCall
from contextkit.sandbox.executor import CommandSandbox
from contextkit.selection import FileSelection, ensure_active_file, normalize_selected_paths
from contextkit.symbols.models import ActiveSymbolInfo
from contextkit.tools.definitions import (
    Finish,
    Investigate,
    get_selection_tools,
    parse_tool_call,
)

logger = logging.getLogger("contextkit.agent")

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")
_JSON_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)

# Characters of command output echoed to the status sink per turn.
STATUS_PREVIEW_CHARS = 200


class StatusSink(Protocol):
    def post_status(self, message: str, is_error: bool = False) -> None: ...


class SelectionStatus(str, Enum):
    FINISHED = "finished"
    LEGACY = "legacy"
    CACHED = "cached"
    TURN_LIMIT = "turn_limit"
    FALLBACK = "fallback"
    CANCELLED = "cancelled"
    EMPTY = "empty"


@dataclass
class SelectionRequest:
    """Everything the model sees when choosing files."""

    request: str
    workspace_root: str
    candidate_paths: list[str]
    preselected: list[str] = field(default_factory=list)
    active_file: str | None = None
    selected_text: str = ""
    active_symbol: ActiveSymbolInfo | None = None
    diagnostics: str = ""
    file_summaries: dict[str, str] = field(default_factory=dict)
    project_name: str = ""

    def cache_key(self) -> str:
        fingerprint = hashlib.sha256("\n".join(sorted(self.candidate_paths)).encode()).hexdigest()
        raw = json.dumps(
            [self.request, self.active_file or "", fingerprint, sorted(self.preselected)],
            separators=(",", ":"),
        )
        return hashlib.sha256(raw.encode()).hexdigest()

    def fallback(self) -> list[FileSelection]:
        """Active file first, then the pre-selected paths that are real candidates."""
        known = set(self.candidate_paths)
        selections = [FileSelection(path=p) for p in dict.fromkeys(self.preselected) if p in known]
        return ensure_active_file(selections, self.active_file)


@dataclass
class AgentTurn:
    """A single model turn in the selection loop."""

    turn: int
    tool: str = ""
    command: str = ""
    output: str = ""
    content: str = ""
    usage: dict[str, int] = field(default_factory=dict)


@dataclass
class SelectionOutcome:
    selections: list[FileSelection]
    turns: list[AgentTurn]
    status: SelectionStatus
    error: str = ""

    @property
    def paths(self) -> list[str]:
        return [s.path for s in self.selections]


def parse_json_selection(text: str) -> list[Any] | None:
    """Pull a JSON array out of a plain-text reply, tolerating code fences."""
    stripped = _FENCE_RE.sub("", text.strip()).strip()
    candidates = [stripped]
    match = _JSON_ARRAY_RE.search(stripped)
    if match and match.group(0) != stripped:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, list):
            return value
    return None


class SelectionController:
    """Runs the investigate/finish loop against an LLM provider.

    The controller owns no cache of its own: the selection TTLCache is passed
    in by whoever owns the session's ``CacheService``.
    """

    def __init__(
        self,
        llm: LLMProvider,
        sandbox: CommandSandbox,
        config: SelectionConfig | None = None,
        cache: TTLCache | None = None,
        on_turn: Callable[[AgentTurn], None] | None = None,
        status: StatusSink | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
    ) -> None:
        self.llm = llm
        self.sandbox = sandbox
        self.config = config or SelectionConfig()
        self.cache = cache if cache is not None else TTLCache("selection", self.config.cache_ttl_seconds)
        self.on_turn = on_turn
        self.status = status
        self.max_tokens = max_tokens
        self.temperature = temperature

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def select(
        self,
        req: SelectionRequest,
        token: CancellationToken | None = None,
        use_cache: bool = True,
    ) -> SelectionOutcome:
        """Choose the files for `req`. Never raises."""
        if not req.candidate_paths and not req.active_file:
            return SelectionOutcome(selections=[], turns=[], status=SelectionStatus.EMPTY)

        caching = use_cache and self.config.use_cache
        key = req.cache_key()
        if caching:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Selection cache hit for %s", key[:12])
                return SelectionOutcome(selections=list(cached), turns=[], status=SelectionStatus.CACHED)

        try:
            if getattr(self.llm, "supports_tools", True):
                outcome = await self._run_loop(req, token)
            else:
                outcome = await self._run_legacy(req, token)
        except OperationCancelled:
            logger.info("Selection cancelled")
            return SelectionOutcome(
                selections=req.fallback(), turns=[], status=SelectionStatus.CANCELLED
            )

        if not outcome.selections and outcome.status in (SelectionStatus.FINISHED, SelectionStatus.LEGACY):
            outcome.status = SelectionStatus.EMPTY
        if caching and outcome.status in (SelectionStatus.FINISHED, SelectionStatus.LEGACY):
            self.cache.set(key, list(outcome.selections), scope=req.workspace_root)
        return outcome

    def clear_cache(self, root: str | None = None) -> int:
        return self.cache.clear(root)

    def cache_stats(self):
        return self.cache.stats()

    # ------------------------------------------------------------------
    # Tool-calling loop
    # ------------------------------------------------------------------

    async def _run_loop(self, req: SelectionRequest, token: CancellationToken | None) -> SelectionOutcome:
        tools = get_selection_tools(self.sandbox, req.workspace_root, token)
        prompt = build_selection_prompt(
            request=req.request,
            candidate_paths=req.candidate_paths,
            preselected=req.preselected,
            active_file=req.active_file,
            selected_text=req.selected_text,
            active_symbol=req.active_symbol,
            diagnostics=req.diagnostics,
            file_summaries=req.file_summaries,
            always_investigate=self.config.always_investigate,
            max_chars=self.config.max_prompt_chars,
        )
        messages: list[Message] = [
            Message(role="system", content=get_system_prompt(req.project_name)),
            Message(role="user", content=prompt),
        ]
        turns: list[AgentTurn] = []
        self._post("Selecting relevant files...")

        for index in range(self.config.max_turns):
            if is_cancelled(token):
                return self._cancelled(req, turns)

            turn = AgentTurn(turn=index + 1)
            response = await self._complete(messages, tools.get_definitions(), token)
            if response is None:
                return self._fallback(req, turns, "model call failed")
            turn.usage = response.usage
            turn.content = response.content

            if not response.has_tool_calls:
                raw = parse_json_selection(response.content)
                self._record(turn, turns)
                if raw is None:
                    return self._fallback(req, turns, "model replied without a tool call")
                return self._finish(req, raw, turns, SelectionStatus.FINISHED)

            call = response.tool_calls[0]
            turn.tool = call.name
            try:
                action = parse_tool_call(call)
            except SelectionArgumentError as e:
                self._record(turn, turns)
                return self._fallback(req, turns, str(e))

            if isinstance(action, Finish):
                self._record(turn, turns)
                return self._finish(req, list(action.selections), turns, SelectionStatus.FINISHED)

            output = await self._investigate(action, call, tools, token)
            if output is None:
                self._record(turn, turns)
                return self._cancelled(req, turns)
            turn.command = action.command
            turn.output = output
            self._record(turn, turns)

            messages.append(Message(role="assistant", content=response.content, tool_calls=[call]))
            messages.append(
                Message(role="tool", content=output, tool_call_id=call.id)
            )

        logger.warning("Selection hit the %d-turn limit; using fallback", self.config.max_turns)
        self._post("Selection did not finish in time; using heuristic files.")
        return SelectionOutcome(
            selections=req.fallback(), turns=turns, status=SelectionStatus.TURN_LIMIT
        )

    async def _investigate(
        self,
        action: Investigate,
        call: ToolCall,
        tools,
        token: CancellationToken | None,
    ) -> str | None:
        """Run one command; None means cancellation arrived and the result is discarded."""
        if is_cancelled(token):
            return None
        self._post(f"Running `{action.command}`...")
        result = await tools.execute(call.name, {"command": action.command})
        if is_cancelled(token):
            return None
        output = truncate_with_marker(result, self.config.max_tool_output_chars, "Command output")
        preview = output[:STATUS_PREVIEW_CHARS] + ("..." if len(output) > STATUS_PREVIEW_CHARS else "")
        self._post(preview, is_error=output.startswith("Error"))
        return output

    # ------------------------------------------------------------------
    # Single-prompt path for models without tool calling
    # ------------------------------------------------------------------

    async def _run_legacy(self, req: SelectionRequest, token: CancellationToken | None) -> SelectionOutcome:
        prompt = build_legacy_prompt(
            request=req.request,
            candidate_paths=req.candidate_paths,
            preselected=req.preselected,
            active_file=req.active_file,
            file_summaries=req.file_summaries,
            max_chars=self.config.max_prompt_chars,
        )
        if is_cancelled(token):
            return self._cancelled(req, [])
        turn = AgentTurn(turn=1)
        response = await self._complete([Message(role="user", content=prompt)], None, token)
        if response is None:
            return self._fallback(req, [], "model call failed")
        turn.content = response.content
        turn.usage = response.usage
        turns: list[AgentTurn] = []
        self._record(turn, turns)

        raw = parse_json_selection(response.content)
        if raw is None:
            return self._fallback(req, turns, "reply was not a JSON array")
        return self._finish(req, raw, turns, SelectionStatus.LEGACY)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _complete(self, messages, tools, token: CancellationToken | None) -> LLMResponse | None:
        call = self.llm.complete(
            messages=messages,
            tools=tools,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        try:
            if token is not None:
                return await token.guard(call)
            return await call
        except OperationCancelled:
            raise
        except Exception as e:
            logger.warning("Selection model call failed: %s", e)
            return None

    def _finish(
        self,
        req: SelectionRequest,
        raw: list[Any],
        turns: list[AgentTurn],
        status: SelectionStatus,
    ) -> SelectionOutcome:
        selections = normalize_selected_paths(
            raw, req.candidate_paths, req.active_file, req.workspace_root
        )
        logger.info("Model selected %d file(s) after %d turn(s)", len(selections), len(turns))
        return SelectionOutcome(selections=selections, turns=turns, status=status)

    def _fallback(self, req: SelectionRequest, turns: list[AgentTurn], reason: str) -> SelectionOutcome:
        logger.warning("Selection falling back to heuristics: %s", reason)
        self._post(f"Smart selection failed ({reason}); using heuristic files.", is_error=True)
        return SelectionOutcome(
            selections=req.fallback(), turns=turns, status=SelectionStatus.FALLBACK, error=reason
        )

    def _cancelled(self, req: SelectionRequest, turns: list[AgentTurn]) -> SelectionOutcome:
        logger.info("Selection cancelled after %d turn(s)", len(turns))
        return SelectionOutcome(
            selections=req.fallback(), turns=turns, status=SelectionStatus.CANCELLED
        )

    def _record(self, turn: AgentTurn, turns: list[AgentTurn]) -> None:
        turns.append(turn)
        if self.on_turn:
            self.on_turn(turn)

    def _post(self, message: str, is_error: bool = False) -> None:
        if self.status is not None:
            self.status.post_status(message, is_error=is_error)

"""Tests for end-to-end context building."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextkit.agent.controller import SelectionStatus
from contextkit.config import ContextBudget, ProjectConfig
from contextkit.graph.dependencies import ImportGraphBuilder
from contextkit.service import (
    NO_FILES,
    NO_SELECTION,
    NO_WORKSPACE,
    BuildOptions,
    ContextService,
    EditorContext,
)
from contextkit.workspace.filesystem import MemoryFileSystem


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def post_status(self, message: str, is_error: bool = False) -> None:
        self.messages.append(message)


def _service(fs: MemoryFileSystem, **kwargs) -> ContextService:
    return ContextService("/ws", fs=fs, dependencies=ImportGraphBuilder(fs), **kwargs)


class TestSentinels:
    @pytest.mark.asyncio
    async def test_no_workspace(self, memory_fs: MemoryFileSystem):
        service = ContextService("/nowhere", fs=memory_fs)
        result = await service.build_project_context("anything")
        assert result.context_string == NO_WORKSPACE
        assert result.relevant_files == []

    @pytest.mark.asyncio
    async def test_no_files(self):
        fs = MemoryFileSystem({"/ws/node_modules/pkg/index.js": "x"})
        result = await ContextService("/ws", fs=fs).build_project_context("anything")
        assert result.context_string == NO_FILES

    @pytest.mark.asyncio
    async def test_no_selection(self, memory_fs: MemoryFileSystem):
        result = await _service(memory_fs).build_project_context("what does this do?")
        assert result.context_string == NO_SELECTION


class TestHeuristicBuild:
    @pytest.mark.asyncio
    async def test_active_file_and_dependencies(self, memory_fs: MemoryFileSystem):
        sink = RecordingSink()
        service = _service(memory_fs, status=sink)
        result = await service.build_project_context(
            "explain run", EditorContext(active_file="src/app.ts")
        )

        assert result.relevant_files == ["src/app.ts", "src/util.ts", "src/types.ts"]
        assert result.included_paths[0] == "src/app.ts"
        assert result.selection_status is None
        assert "Relevant files identified: 3" in result.context_string
        assert "export function run" in result.context_string
        assert result.metrics.candidate_count == 5
        assert result.metrics.processed_count == 3
        assert any(m.startswith("Context ready") for m in sink.messages)

    @pytest.mark.asyncio
    async def test_absolute_active_path(self, memory_fs: MemoryFileSystem):
        result = await _service(memory_fs).build_project_context(
            "", EditorContext(active_file="/ws/src/app.ts")
        )
        assert result.relevant_files[0] == "src/app.ts"

    @pytest.mark.asyncio
    async def test_active_file_outside_candidates(self, memory_fs: MemoryFileSystem):
        result = await _service(memory_fs).build_project_context(
            "", EditorContext(active_file="dist/app.js")
        )
        assert result.relevant_files == ["dist/app.js"]
        assert "console.log('built');" in result.context_string

    @pytest.mark.asyncio
    async def test_mentioned_paths_are_added(self, memory_fs: MemoryFileSystem):
        result = await _service(memory_fs).build_project_context(
            "Why is lib/format.ts uppercasing? See also missing/file.ts"
        )
        assert result.relevant_files == ["lib/format.ts"]

    @pytest.mark.asyncio
    async def test_budget_option(self, memory_fs: MemoryFileSystem):
        result = await _service(memory_fs).build_project_context(
            "",
            EditorContext(active_file="src/app.ts"),
            BuildOptions(budget=ContextBudget(max_total_chars=300)),
        )
        assert len(result.context_string) <= 300

    @pytest.mark.asyncio
    async def test_created_file_is_seen_after_notification(self, memory_fs: MemoryFileSystem):
        service = _service(memory_fs)
        await service.build_project_context("", EditorContext(active_file="src/app.ts"))

        memory_fs.write("/ws/src/extra.ts", "export const extra = 1;\n")
        stale = await service.build_project_context("look at src/extra.ts")
        assert stale.context_string == NO_SELECTION

        service.on_files_created(["src/extra.ts"])
        fresh = await service.build_project_context("look at src/extra.ts")
        assert fresh.relevant_files == ["src/extra.ts"]


class TestSmartSelection:
    @pytest.mark.asyncio
    async def test_model_selection(self, memory_fs: MemoryFileSystem, fake_provider):
        provider = fake_provider([fake_provider.finish("src/util.ts")])
        service = _service(memory_fs, llm=provider)
        result = await service.build_project_context(
            "how are names trimmed?", EditorContext(active_file="src/app.ts")
        )

        assert result.selection_status == SelectionStatus.FINISHED
        assert result.relevant_files == ["src/app.ts", "src/util.ts"]
        prompt = provider.calls[0][1].content
        assert "how are names trimmed?" in prompt
        assert "src/types.ts" in prompt

    @pytest.mark.asyncio
    async def test_smart_selection_can_be_disabled(self, memory_fs: MemoryFileSystem, fake_provider):
        provider = fake_provider()
        service = _service(memory_fs, llm=provider)
        result = await service.build_project_context(
            "how are names trimmed?",
            EditorContext(active_file="src/app.ts"),
            BuildOptions(use_smart_selection=False),
        )
        assert provider.calls == []
        assert result.selection_status is None

    @pytest.mark.asyncio
    async def test_disabled_in_config(self, memory_fs: MemoryFileSystem, fake_provider):
        config = ProjectConfig()
        config.selection.enabled = False
        provider = fake_provider()
        service = _service(memory_fs, llm=provider, config=config)
        await service.build_project_context("question", EditorContext(active_file="src/app.ts"))
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_model_failure_uses_heuristics(self, memory_fs: MemoryFileSystem, fake_provider):
        provider = fake_provider([RuntimeError("boom")])
        service = _service(memory_fs, llm=provider)
        result = await service.build_project_context(
            "question", EditorContext(active_file="src/app.ts")
        )
        assert result.selection_status == SelectionStatus.FALLBACK
        assert result.relevant_files == ["src/app.ts", "src/util.ts", "src/types.ts"]

    @pytest.mark.asyncio
    async def test_operation_id_clears_selection_cache(self, memory_fs: MemoryFileSystem, fake_provider):
        provider = fake_provider([fake_provider.finish("src/util.ts"), fake_provider.finish("README.md")])
        service = _service(memory_fs, llm=provider)
        editor = EditorContext(active_file="src/app.ts")

        first = await service.build_project_context("q", editor, BuildOptions(operation_id="op1"))
        again = await service.build_project_context("q", editor, BuildOptions(operation_id="op1"))
        fresh = await service.build_project_context("q", editor, BuildOptions(operation_id="op2"))

        assert first.selection_status == SelectionStatus.FINISHED
        assert again.selection_status == SelectionStatus.CACHED
        assert again.relevant_files == first.relevant_files
        assert fresh.selection_status == SelectionStatus.FINISHED
        assert fresh.relevant_files == ["src/app.ts", "README.md"]

    @pytest.mark.asyncio
    async def test_force_recalculate(self, memory_fs: MemoryFileSystem, fake_provider):
        provider = fake_provider([fake_provider.finish("src/util.ts"), fake_provider.finish("README.md")])
        service = _service(memory_fs, llm=provider)
        editor = EditorContext(active_file="src/app.ts")
        await service.build_project_context("q", editor)
        result = await service.build_project_context("q", editor, BuildOptions(force_recalculate=True))
        assert result.relevant_files == ["src/app.ts", "README.md"]


class TestCacheControl:
    @pytest.mark.asyncio
    async def test_cache_stats_and_clear(self, memory_fs: MemoryFileSystem):
        service = _service(memory_fs)
        await service.build_project_context("", EditorContext(active_file="src/app.ts"))
        stats = service.cache_stats()
        assert stats["scan"]["size"] == 1
        assert stats["selection"]["size"] == 0

        service.clear_caches()
        assert service.cache_stats()["scan"]["size"] == 0

    @pytest.mark.asyncio
    async def test_local_workspace(self, tmp_project: Path):
        service = ContextService.for_workspace(str(tmp_project))
        result = await service.build_project_context(
            "", EditorContext(active_file="utils.py", line=11)
        )
        assert result.relevant_files[0] == "utils.py"
        assert "main.py" in result.relevant_files
        assert "Active Symbol Detail: calculate_total" in result.context_string
        assert "Symbol Information:" in result.context_string
        service.close()

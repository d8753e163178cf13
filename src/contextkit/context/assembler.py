"""Budgeted context assembly.

Renders the header and then each section in order, giving every section the
characters still left under ``max_total_chars``. Once the budget is spent
no further section is attempted, so the result never exceeds the budget.

Usage:
    from contextkit.context import AssemblyInputs, ContextAssembler

    assembler = ContextAssembler()
    assembled = await assembler.assemble(inputs)
    print(assembled.text)
"""

from __future__ import annotations

import logging
import time

from contextkit.cancellation import CancellationToken, is_cancelled
from contextkit.context.models import AssembledContext, AssemblyInputs
from contextkit.context.sections import ContextSection, default_sections
from contextkit.context.truncation import truncate_with_marker

logger = logging.getLogger("contextkit.context")


def context_header(workspace_name: str, file_count: int) -> str:
    return f"Project Context (Workspace: {workspace_name}):\nRelevant files identified: {file_count}\n\n"


class ContextAssembler:
    """Turns selected files and their surrounding signals into prompt text."""

    def __init__(self, sections: list[ContextSection] | None = None) -> None:
        self.sections = sections if sections is not None else default_sections()

    async def assemble(
        self,
        inputs: AssemblyInputs,
        token: CancellationToken | None = None,
    ) -> AssembledContext:
        start = time.perf_counter()
        budget = inputs.budget.max_total_chars
        header = context_header(inputs.workspace_name, len(inputs.selections))
        text = truncate_with_marker(header, budget, "Header")
        parts = [text]
        length = len(text)
        included: list[str] = []
        truncated: list[str] = []
        skipped = 0
        cancelled = False

        if text != header:
            truncated.append("Header")

        for section in self.sections:
            remaining = budget - length
            if remaining <= 0:
                logger.info("Context budget exhausted before %s", section.title)
                break
            if is_cancelled(token):
                cancelled = True
                break

            result = await section.render(inputs, remaining, token)
            if not result.text:
                continue
            if len(result.text) > remaining:
                # A section overran its allowance; cut it rather than break the budget.
                result.text = truncate_with_marker(result.text, remaining, section.title)
                result.truncated = True
            parts.append(result.text)
            length += len(result.text)
            included.extend(result.included_paths)
            skipped += result.skipped
            if result.truncated:
                truncated.append(section.title)

        elapsed = (time.perf_counter() - start) * 1000
        logger.info(
            "Assembled %d chars from %d file(s) in %.1fms (%d skipped)",
            length, len(included), elapsed, skipped,
        )
        return AssembledContext(
            text="".join(parts),
            included_paths=included,
            skipped_for_size=skipped,
            truncated_sections=truncated,
            cancelled=cancelled or is_cancelled(token),
        )

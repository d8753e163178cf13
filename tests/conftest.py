"""Shared test fixtures for contextkit."""

from __future__ import annotations

from pathlib import Path

import pytest

from contextkit.exceptions import ModelInvocationError
from contextkit.llm.base import LLMProvider, LLMResponse, Message, ToolCall
from contextkit.workspace.filesystem import MemoryFileSystem


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary project directory with sample Python files."""
    # Main module
    (tmp_path / "main.py").write_text('''"""Main application entry point."""

from utils import helper_function, calculate_total
from models import User, Order


def main():
    """Run the main application."""
    user = User("Alice", "alice@example.com")
    order = Order(user, items=["widget", "gadget"])
    total = calculate_total(order.items)
    result = helper_function(total)
    print(f"Order total: {result}")
    return result


def parse_arguments():
    """Parse command line arguments."""
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_arguments()
    main()
''')

    # Utils module
    (tmp_path / "utils.py").write_text('''"""Utility functions."""

TAX_RATE = 0.08


def helper_function(value):
    """Apply formatting to a value."""
    return f"${value:.2f}"


def calculate_total(items):
    """Calculate total price for a list of items."""
    prices = {"widget": 9.99, "gadget": 24.99, "doohickey": 4.99}
    subtotal = sum(prices.get(item, 0) for item in items)
    tax = subtotal * TAX_RATE
    return subtotal + tax


def validate_email(email):
    """Validate an email address."""
    import re
    pattern = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\\.[a-zA-Z0-9-.]+$"
    return bool(re.match(pattern, email))
''')

    # Models module
    (tmp_path / "models.py").write_text('''"""Data models."""


class User:
    """Represents a user in the system."""

    def __init__(self, name: str, email: str):
        self.name = name
        self.email = email

    def display_name(self):
        """Get the display name."""
        return self.name.title()

    def is_valid(self):
        """Check if user data is valid."""
        from utils import validate_email
        return bool(self.name) and validate_email(self.email)


class Order:
    """Represents an order."""

    def __init__(self, user: User, items: list):
        self.user = user
        self.items = items

    def get_total(self):
        """Get the order total."""
        from utils import calculate_total
        return calculate_total(self.items)

    def summary(self):
        """Get order summary string."""
        total = self.get_total()
        return f"Order for {self.user.display_name()}: {len(self.items)} items, ${total:.2f}"
''')

    # A subdirectory with more files
    api_dir = tmp_path / "api"
    api_dir.mkdir()

    (api_dir / "__init__.py").write_text('"""API package."""\n')

    (api_dir / "routes.py").write_text('''"""API routes."""

from models import User, Order


def get_user(user_id):
    """Get a user by ID."""
    # Simulated database lookup
    return User("Test User", "test@example.com")


def create_order(user_id, items):
    """Create a new order."""
    user = get_user(user_id)
    order = Order(user, items)
    return {"total": order.get_total(), "summary": order.summary()}


def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
''')

    (tmp_path / "notes.md").write_text("# Notes\n\nTODO: document the order flow\n")

    # Dependencies and binaries never reach the candidate set
    vendor = tmp_path / "node_modules" / "leftpad"
    vendor.mkdir(parents=True)
    (vendor / "index.js").write_text("// TODO: vendored, must stay hidden\n")
    (tmp_path / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x00")

    return tmp_path


@pytest.fixture
def sample_python_source() -> str:
    """Python source with classes, methods and module-level functions."""
    return '''"""Sample module."""

import os
from typing import List, Optional
from pathlib import Path


CONSTANT_VALUE = 42


class BaseProcessor:
    """Base class for processors."""

    def __init__(self, name: str):
        self.name = name

    def process(self, data: List[str]) -> List[str]:
        """Process the data."""
        return [self._transform(item) for item in data]

    def _transform(self, item: str) -> str:
        """Transform a single item."""
        return item.strip()


class AdvancedProcessor(BaseProcessor):
    """Advanced processor with extra features."""

    def __init__(self, name: str, verbose: bool = False):
        super().__init__(name)
        self.verbose = verbose

    def process(self, data: List[str]) -> List[str]:
        """Process with logging."""
        if self.verbose:
            print(f"Processing {len(data)} items")
        return super().process(data)

    def batch_process(self, batches: List[List[str]]) -> List[List[str]]:
        """Process multiple batches."""
        return [self.process(batch) for batch in batches]


def create_processor(name: str, advanced: bool = False) -> BaseProcessor:
    """Factory function for creating processors."""
    if advanced:
        return AdvancedProcessor(name, verbose=True)
    return BaseProcessor(name)


def run_pipeline(items: List[str], processor_name: str = "default") -> List[str]:
    """Run the processing pipeline."""
    processor = create_processor(processor_name)
    result = processor.process(items)
    return result
'''



@pytest.fixture
def memory_fs() -> MemoryFileSystem:
    """A small TypeScript workspace rooted at /ws."""
    return MemoryFileSystem(
        {
            "/ws/src/app.ts": (
                "import { helper } from './util';\n"
                "import type { Config } from './types';\n"
                "\n"
                "export function run(config: Config) {\n"
                "  return helper(config.name);\n"
                "}\n"
            ),
            "/ws/src/util.ts": "export function helper(name: string) {\n  return name.trim();\n}\n",
            "/ws/src/types.ts": "export interface Config {\n  name: string;\n}\n",
            "/ws/lib/format.ts": "export const format = (s: string) => s.toUpperCase();\n",
            "/ws/README.md": "# Demo workspace\n",
            "/ws/node_modules/pkg/index.js": "module.exports = {};\n",
            "/ws/dist/app.js": "console.log('built');\n",
            "/ws/assets/logo.png": b"\x89PNG\r\n\x1a\n",
        }
    )


class FakeProvider(LLMProvider):
    """Replays a scripted list of responses. Exceptions in the script are raised."""

    def __init__(self, responses=None, supports_tools: bool = True) -> None:
        super().__init__(model="fake-model")
        self.responses = list(responses or [])
        self.supports_tools = supports_tools
        self.calls: list[list[Message]] = []

    async def complete(self, messages, tools=None, temperature=0.0, max_tokens=4096):
        self.calls.append(list(messages))
        if not self.responses:
            raise ModelInvocationError("No scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    @staticmethod
    def investigate(command: str, call_id: str = "call_1") -> LLMResponse:
        return LLMResponse(
            tool_calls=[ToolCall(id=call_id, name="run_terminal_command", arguments={"command": command})]
        )

    @staticmethod
    def finish(*paths: str, call_id: str = "call_f") -> LLMResponse:
        return LLMResponse(
            tool_calls=[ToolCall(id=call_id, name="finish_selection", arguments={"selectedFiles": list(paths)})]
        )

    @staticmethod
    def text(content: str) -> LLMResponse:
        return LLMResponse(content=content)


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    return FakeProvider

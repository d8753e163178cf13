"""Allow-listed, read-only command execution for workspace investigation."""

from contextkit.sandbox.executor import CommandSandbox
from contextkit.sandbox.policy import ALLOWED_COMMANDS, check_command, is_safe, split_pipeline
from contextkit.sandbox.rewrite import rewrite_command, rewrite_segment

__all__ = [
    "ALLOWED_COMMANDS",
    "CommandSandbox",
    "check_command",
    "is_safe",
    "rewrite_command",
    "rewrite_segment",
    "split_pipeline",
]

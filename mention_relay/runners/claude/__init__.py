"""Claude Code runner package."""

from mention_relay.runners.claude.config import ClaudeConfig
from mention_relay.runners.claude.runner import ClaudeRunner

__all__ = ["ClaudeConfig", "ClaudeRunner"]

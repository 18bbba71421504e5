"""Claude runner configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ClaudeConfig:
    model: str | None = None
    permission_mode: str | None = None

    # Path to an MCP servers JSON file passed through --mcp-config.
    mcp_config: str | None = None

    # Optional overrides (otherwise env defaults apply)
    claude_bin: str | None = None

    def resolve_bin(self) -> str:
        return self.claude_bin or os.getenv("CLAUDE_BIN", "claude")

    def resolve_model(self) -> str | None:
        return self.model or os.getenv("CLAUDE_MODEL") or None

    def resolve_permission_mode(self) -> str:
        return (
            self.permission_mode
            or os.getenv("CLAUDE_PERMISSION_MODE")
            or "bypassPermissions"
        )

    def resolve_mcp_config(self) -> str | None:
        return self.mcp_config or os.getenv("CLAUDE_MCP_CONFIG") or None

"""Mention relay: run a coding agent for chat mentions with live progress."""

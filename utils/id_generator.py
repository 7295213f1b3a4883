"""Identifier helpers for requests, tool calls and response objects."""
import secrets
import uuid


def generate_request_id() -> str:
    return f"agent-{uuid.uuid4()}"


def generate_tool_call_id() -> str:
    return f"call_{secrets.token_hex(12)}"


def generate_session_id() -> str:
    return str(uuid.uuid4())


def short_request_id() -> str:
    """Short id used as the `[request_id]` log prefix."""
    return str(uuid.uuid4())[:8]

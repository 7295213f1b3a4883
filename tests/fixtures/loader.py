"""Test fixture loader utilities

Helper functions to load and parse fixture JSON files.
"""
import json
from pathlib import Path
from typing import Any, Dict, List

FIXTURES_DIR = Path(__file__).parent

THINKING_SIGNATURE = "sig-thinking-0123456789012345678901234567890123456789abcdef"
TOOL_SIGNATURE = "sig-tool-call-0123456789012345678901234567890123456789abcdef"


def load_fixture(filename: str) -> Dict[str, Any]:
    """Load a JSON fixture file

    Args:
        filename: Name of the fixture file (e.g., 'upstream_streams.json')

    Returns:
        Parsed JSON data as dictionary
    """
    fixture_path = FIXTURES_DIR / filename
    with open(fixture_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def get_upstream_lines(stream_name: str) -> List[str]:
    """Get the raw lines of a recorded upstream stream"""
    return load_fixture('upstream_streams.json')[stream_name]


def get_upstream_stream(stream_name: str) -> str:
    """Get a recorded upstream stream as the SSE text the upstream sends"""
    return "\n".join(get_upstream_lines(stream_name)) + "\n"

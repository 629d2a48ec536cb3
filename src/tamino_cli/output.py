"""
CLI Output

Renders command outcomes, server messages and result XML as a
key/value table, JSON or the raw response body.
"""

import json
import sys
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from tamino_client.models import Outcome

FORMATS = ("table", "json", "xml")


def outcome_to_dict(outcome: Outcome) -> Dict[str, Any]:
    """
    Summarize an outcome for display.

    Args:
        outcome: Command outcome

    Returns:
        Ordered dictionary of the interesting fields
    """
    data = {
        "success": outcome.success,
        "http_status": outcome.http_status,
    }
    if outcome.return_value is not None:
        data["return_value"] = outcome.return_value
    if outcome.error_kind is not None:
        data["error_kind"] = outcome.error_kind.value
    if outcome.error_detail:
        data["error"] = outcome.error_detail
    if outcome.messages:
        data["messages"] = [asdict(m) for m in outcome.messages]
    return data


def _plain(obj: Any) -> Any:
    """Reduce outcomes and enums to JSON-friendly values."""
    if isinstance(obj, Outcome):
        return outcome_to_dict(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [_plain(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _plain(v) for k, v in obj.items()}
    return obj


def render(data: Any, format: str = "table", raw_xml: Optional[str] = None) -> str:
    """
    Render data in one of the CLI formats.

    xml prints the response body as received; the other formats
    describe the outcome or settings mapping.
    """
    if format == "xml":
        return raw_xml or "(empty response body)"

    if format == "json":
        return json.dumps(_plain(data), indent=2, default=str)

    if isinstance(data, Outcome):
        data = outcome_to_dict(data)
    if isinstance(data, dict):
        return render_table(data)
    return "" if data is None else str(data)


def render_table(data: Dict[str, Any]) -> str:
    """Aligned "Key : value" lines; None values are left out."""
    rows = [(str(k).replace("_", " ").title(), v) for k, v in data.items() if v is not None]
    if not rows:
        return "(nothing to show)"

    width = max(len(key) for key, _ in rows) + 2
    return "\n".join(f"{key.ljust(width)}: {render_value(value)}" for key, value in rows)


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, list):
        return "; ".join(render_value(v) for v in value)
    if isinstance(value, dict):
        return ", ".join(f"{k}={v}" for k, v in value.items() if v not in (None, ""))
    return str(value)


def messages_lines(outcome: Outcome) -> List[str]:
    """Server messages of an outcome, one per line: code: text (line)."""
    lines = []
    for message in outcome.messages:
        line = f"{message.return_value}"
        if message.text:
            line += f": {message.text}"
        if message.line:
            line += f" ({message.line})"
        lines.append(line)
    return lines


def print_success(message: str) -> None:
    print(f"SUCCESS: {message}")


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


def print_info(message: str) -> None:
    print(f"INFO: {message}")


class OutputFormatter:
    """Writes command output in the format chosen with --format."""

    def __init__(self, format: str = "table", quiet: bool = False):
        """
        Args:
            format: One of FORMATS
            quiet: Suppress SUCCESS and INFO lines
        """
        self.format = format
        self.quiet = quiet

    @property
    def is_table(self) -> bool:
        return self.format == "table"

    def output(self, data: Any, raw_xml: Optional[str] = None) -> None:
        print(render(data, self.format, raw_xml))

    def success(self, message: str) -> None:
        if not self.quiet:
            print_success(message)

    def info(self, message: str) -> None:
        if not self.quiet:
            print_info(message)

"""Parser for the textual action protocol spoken between models and tools.

A model selects a tool by writing two adjacent lines::

    Action: read_file
    Action Input: {"path": "notes.txt"}

The ReAct variant may add a leading ``Thought:`` line and ends with either a
``Final Answer:`` line or ``Action: Final Answer`` followed by the answer on
the ``Action Input:`` line.

Text is first split into classified lines, then fields are pulled from those
lines so every failure can name the line that broke the grammar.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional

from agentflow.core.errors import ActionParseError
from agentflow.core.models import JSONValue, ParsedAction, ReActStep

ACTION_MARKER = "Action:"
FINAL_ANSWER_ACTION = "Final Answer"


class LineKind(Enum):
    THOUGHT = "Thought:"
    ACTION_INPUT = "Action Input:"
    ACTION = "Action:"
    OBSERVATION = "Observation:"
    FINAL_ANSWER = "Final Answer:"
    TEXT = ""


# "Action Input:" must be tried before "Action:".
_PREFIXES = (
    LineKind.THOUGHT,
    LineKind.ACTION_INPUT,
    LineKind.ACTION,
    LineKind.OBSERVATION,
    LineKind.FINAL_ANSWER,
)

_TOOL_NAME_EXTRA_CHARS = frozenset("_-.")


@dataclass(frozen=True, slots=True)
class ProtocolLine:
    kind: LineKind
    value: str
    lineno: int
    raw: str = ""


def tokenize(text: str) -> List[ProtocolLine]:
    """Split model output into lines tagged with their protocol prefix.

    Only ``\\n`` (optionally preceded by ``\\r``) ends a line; other Unicode
    line separators may appear unescaped inside JSON strings.
    """
    lines: List[ProtocolLine] = []
    for lineno, raw_line in enumerate(text.split("\n"), start=1):
        raw_line = raw_line.rstrip("\r")
        stripped = raw_line.strip()
        for kind in _PREFIXES:
            if stripped.startswith(kind.value):
                value = stripped[len(kind.value):].strip()
                lines.append(ProtocolLine(kind=kind, value=value, lineno=lineno, raw=raw_line))
                break
        else:
            lines.append(
                ProtocolLine(kind=LineKind.TEXT, value=stripped, lineno=lineno, raw=raw_line)
            )
    return lines


def contains_action(text: str) -> bool:
    """Return True when the text carries the action marker anywhere."""
    return ACTION_MARKER in text


def parse_action(text: str) -> ParsedAction:
    """Extract the first tool invocation from model output.

    Raises:
        ActionParseError: when no ``Action:`` line exists, the next line is
            not ``Action Input:``, or its payload is not a JSON object.
    """
    lines = tokenize(text)
    for index, line in enumerate(lines):
        if line.kind is LineKind.ACTION:
            return _action_at(lines, index, text)
    raise ActionParseError("no 'Action:' line found", raw=text)


def parse_react(text: str) -> ReActStep:
    """Extract a thought plus either a tool action or a final answer."""
    lines = tokenize(text)
    thought = ""
    for index, line in enumerate(lines):
        if line.kind is LineKind.THOUGHT and not thought:
            thought = line.value
        elif line.kind is LineKind.FINAL_ANSWER:
            # later lines are kept as written, indentation and prefixes included
            trailing = [rest.raw for rest in lines[index + 1:]]
            head = [line.value] if line.value else []
            answer = "\n".join([*head, *trailing]).rstrip()
            return ReActStep(thought=thought, final_answer=answer)
        elif line.kind is LineKind.ACTION:
            if line.value == FINAL_ANSWER_ACTION:
                answer_line = _input_line_after(lines, index, text)
                return ReActStep(thought=thought, final_answer=answer_line.value)
            return ReActStep(thought=thought, action=_action_at(lines, index, text))
    raise ActionParseError("no 'Action:' or 'Final Answer:' line found", raw=text)


def format_action(tool_name: str, arguments: Mapping[str, JSONValue]) -> str:
    """Render a tool invocation in protocol form with compact JSON input."""
    payload = json.dumps(dict(arguments), separators=(",", ":"), ensure_ascii=False)
    return f"{LineKind.ACTION.value} {tool_name}\n{LineKind.ACTION_INPUT.value} {payload}"


def format_react_step(step: ReActStep) -> str:
    """Render a ReAct step the way it is replayed to the model."""
    if step.action is None:
        return f"Thought: {step.thought}\nFinal Answer: {step.final_answer}"
    return f"Thought: {step.thought}\n{format_action(step.action.tool_name, step.action.arguments)}"


def _action_at(lines: List[ProtocolLine], index: int, text: str) -> ParsedAction:
    action_line = lines[index]
    tool_name = action_line.value
    if not _is_tool_name(tool_name):
        raise ActionParseError(
            f"line {action_line.lineno}: invalid tool name {tool_name!r}", raw=text
        )
    input_line = _input_line_after(lines, index, text)
    return ParsedAction(tool_name=tool_name, arguments=_decode_arguments(input_line, text))


def _input_line_after(lines: List[ProtocolLine], index: int, text: str) -> ProtocolLine:
    action_line = lines[index]
    following: Optional[ProtocolLine] = lines[index + 1] if index + 1 < len(lines) else None
    if following is None or following.kind is not LineKind.ACTION_INPUT:
        raise ActionParseError(
            f"line {action_line.lineno}: 'Action:' must be followed by an 'Action Input:' line",
            raw=text,
        )
    if not following.value:
        raise ActionParseError(f"line {following.lineno}: empty 'Action Input:'", raw=text)
    return following


def _decode_arguments(line: ProtocolLine, text: str) -> dict:
    try:
        arguments = json.loads(line.value, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ActionParseError(
            f"line {line.lineno}: malformed Action Input JSON ({exc.msg} at column {exc.colno})",
            raw=text,
        ) from exc
    except ValueError as exc:
        raise ActionParseError(
            f"line {line.lineno}: malformed Action Input JSON ({exc})", raw=text
        ) from exc
    if not isinstance(arguments, dict):
        raise ActionParseError(
            f"line {line.lineno}: Action Input must be a JSON object, got {type(arguments).__name__}",
            raw=text,
        )
    return arguments


def _reject_constant(name: str) -> None:
    raise ValueError(f"{name} is not valid JSON")


def _is_tool_name(name: str) -> bool:
    return bool(name) and all(ch.isalnum() or ch in _TOOL_NAME_EXTRA_CHARS for ch in name)

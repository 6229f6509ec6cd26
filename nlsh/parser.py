import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import ExtractError, ExtractErrorKind

# An opening fence with an optional language tag, then everything up to the
# matching closing fence, which may end the last line of code. An unterminated
# fence runs to the end of the text.
FENCE_RE = re.compile(
    r"^[ \t]*(?P<fence>```|~~~)[^\n]*\n?(?P<body>.*?)(?:[ \t]*(?P=fence)[ \t\r]*$|\Z)",
    re.MULTILINE | re.DOTALL,
)
# ```ls -la``` written on a single line
INLINE_FENCE_RE = re.compile(r"^[ \t]*```(?!`)([^`\n]+)```[ \t]*$", re.MULTILINE)
BULLET_RE = re.compile(r"^(?:[-*•]|\d+[.)])\s")
SHELL_CHARS_RE = re.compile(r"[|&;<>$`=/\\~*]|\s-")

PROSE_LABELS = ("note", "explanation", "output", "example", "usage", "warning")
CONTINUATIONS = ("\\", "|", "&&")


@dataclass(frozen=True)
class ExtractedCommand:
    """A single shell command ready to show the user and run."""

    text: str


def _clean_line(line: str) -> str:
    """Strip whitespace, a '$ ' prompt marker and wrapping backticks."""
    line = line.strip()
    if line.startswith("$ "):
        line = line[2:].strip()
    if len(line) >= 2 and line[0] == "`" and line[-1] == "`" and "`" not in line[1:-1]:
        line = line[1:-1].strip()
    return line


def _command_lines(text: str) -> List[str]:
    """Non-empty lines of a candidate, with whole-line comments dropped."""
    lines = [_clean_line(line) for line in text.splitlines()]
    return [line for line in lines if line and not line.startswith("#")]


def _looks_like_prose(line: str) -> bool:
    """Heuristic: does this line read as an explanation rather than a command?"""
    if BULLET_RE.match(line):
        return True
    label = line.split(":", 1)[0].strip().lower()
    if ":" in line and label in PROSE_LABELS:
        return True
    if not line[0].isupper():
        return False
    words = line.split()
    if len(words) >= 3 and line[-1] in ".:!?":
        return True
    return len(words) >= 4 and not SHELL_CHARS_RE.search(line)


def _continues(line: str) -> bool:
    return line.endswith(CONTINUATIONS)


def _take_command(lines: List[str]) -> Tuple[str, List[str]]:
    """Split off the first command, following line continuations verbatim."""
    taken = [lines[0]]
    rest = lines[1:]
    while rest and _continues(taken[-1]):
        taken.append(rest.pop(0))
    return "\n".join(taken), rest


def _fenced_candidate(raw_text: str) -> Optional[str]:
    """
    Return the content of the single non-empty fenced block, or None when
    the text has no fences at all.
    """
    text = INLINE_FENCE_RE.sub(lambda m: f"```\n{m.group(1)}\n```", raw_text)
    blocks = [m.group("body") for m in FENCE_RE.finditer(text)]
    if not blocks:
        return None

    non_empty = [block for block in blocks if _command_lines(block)]
    if not non_empty:
        raise ExtractError(ExtractErrorKind.EMPTY, raw_text)
    if len(non_empty) > 1:
        raise ExtractError(ExtractErrorKind.AMBIGUOUS, raw_text)
    return non_empty[0]


def extract_command(raw_text: Optional[str]) -> ExtractedCommand:
    """
    Isolates exactly one shell command from a model's free-text reply.

    Fenced code wins over surrounding prose. Without fences the first line
    is the command and trailing explanation is dropped. A command continued
    with a trailing backslash or operator keeps all of its lines.

    Args:
        raw_text: The provider's raw reply.

    Returns:
        The extracted command.

    Raises:
        ExtractError: EMPTY when nothing usable remains, AMBIGUOUS when more
            than one independent command is present.
    """
    raw_text = raw_text or ""
    if not raw_text.strip():
        raise ExtractError(ExtractErrorKind.EMPTY, raw_text)

    fenced = _fenced_candidate(raw_text)
    lines = _command_lines(fenced if fenced is not None else raw_text)

    if fenced is None:
        # Skip an introduction such as "Here is the command:"
        while lines and _looks_like_prose(lines[0]) and lines[0].endswith(":"):
            lines.pop(0)
    if not lines:
        raise ExtractError(ExtractErrorKind.EMPTY, raw_text)

    command, rest = _take_command(lines)

    if fenced is not None and rest:
        raise ExtractError(ExtractErrorKind.AMBIGUOUS, raw_text)
    if any(not _looks_like_prose(line) for line in rest):
        raise ExtractError(ExtractErrorKind.AMBIGUOUS, raw_text)

    command = command.strip()
    if not command:
        raise ExtractError(ExtractErrorKind.EMPTY, raw_text)
    return ExtractedCommand(text=command)

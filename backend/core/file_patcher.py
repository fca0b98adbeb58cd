"""
Places an annotation block in a Python source file.

Every insertion first strips the previous block, so re-running replaces
instead of appending. Two placements are supported:

  * top of file, below a shebang / PEP 263 encoding pragma, separated from it
    by exactly one blank line;
  * directly above a given line (the class definition), climbing over the
    comment lines that belong to that definition but never above the pragma.

The file's trailing-newline convention and CRLF line endings are preserved.
I/O failures are reported as False; nothing here raises.
"""
import logging
import re
from typing import NamedTuple, Optional

from core.codec import AnnotationCodec

logger = logging.getLogger(__name__)

CODING_PRAGMA = re.compile(r"^[ \t\f]*#.*?coding[:=][ \t]*[-\w.]+")


# ── Pure text operations ──────────────────────────────────────────────────────

def pragma_line_count(lines: list[str]) -> int:
    """Number of leading shebang / encoding lines (at most two)."""
    count = 0
    if lines and lines[0].startswith("#!"):
        count = 1
    if count < len(lines) and count < 2 and CODING_PRAGMA.match(lines[count]):
        count += 1
    return count


def insert_after_pragma(content: str, annotation: str) -> str:
    lines = content.split("\n")
    pragma = pragma_line_count(lines)
    if pragma == 0:
        return f"{annotation}\n{content}"

    index = pragma
    # a pragma-only file gets no separator, so removal restores it exactly
    if any(line.strip() for line in lines[index:]):
        if lines[index].strip():
            lines.insert(index, "")
        index += 1
    lines.insert(index, annotation)
    return _keep_trailing_newline(content, "\n".join(lines))


def insert_before_line(content: str, line_number: int, annotation: str) -> str:
    """Insert above 1-based `line_number`, attaching to its leading comments."""
    lines = content.split("\n")
    index = min(max(line_number - 1, 0), len(lines))
    pragma = pragma_line_count(lines)

    while index > pragma and lines[index - 1].strip().startswith("#"):
        index -= 1

    if index > 0 and lines[index - 1].strip():
        lines.insert(index, "")
        index += 1

    lines.insert(index, annotation)
    return _keep_trailing_newline(content, "\n".join(lines))


def find_class_line(content: str, class_name: str) -> Optional[int]:
    """1-based line of the top-level `class <name>` statement, decorators included."""
    lines = content.split("\n")
    pattern = re.compile(rf"^class\s+{re.escape(class_name)}\b")
    for i, line in enumerate(lines):
        if pattern.match(line):
            while i > 0 and lines[i - 1].startswith("@"):
                i -= 1
            return i + 1
    return None


def _keep_trailing_newline(original: str, result: str) -> str:
    if original.endswith("\n") and not result.endswith("\n"):
        result += "\n"
    return result


# ── File operations ───────────────────────────────────────────────────────────

def insert_at_class_definition(path: str, annotation: str, codec: Optional[AnnotationCodec] = None) -> bool:
    """Replace the file's block with `annotation` at the natural top position."""
    return _patch(path, codec, lambda content: insert_after_pragma(content, annotation))


def insert_at_line(path: str, line_number: int, annotation: str, codec: Optional[AnnotationCodec] = None) -> bool:
    """Replace the file's block with `annotation` directly above `line_number`.

    The line number refers to the file as it reads once the old block is gone.
    """
    return _patch(path, codec, lambda content: insert_before_line(content, line_number, annotation))


def insert_above_class(path: str, class_name: str, annotation: str, codec: Optional[AnnotationCodec] = None) -> bool:
    """Place the block above `class <class_name>`; falls back to the top of the file."""
    def place(content: str) -> str:
        line = find_class_line(content, class_name)
        if line is None:
            logger.debug("class %s not found in %s, inserting at top", class_name, path)
            return insert_after_pragma(content, annotation)
        return insert_before_line(content, line, annotation)

    return _patch(path, codec, place)


def remove_from_file(path: str, codec: Optional[AnnotationCodec] = None) -> bool:
    """Strip the block; True only when the file actually changed."""
    codec = codec or AnnotationCodec()
    source = _read(path)
    if source is None:
        return False
    cleaned = codec.remove(source.text)
    if cleaned == source.text:
        return False
    return _write(path, cleaned, source.crlf)


def _patch(path: str, codec: Optional[AnnotationCodec], place) -> bool:
    codec = codec or AnnotationCodec()
    source = _read(path)
    if source is None:
        return False
    try:
        updated = place(codec.remove(source.text))
    except (ValueError, IndexError) as e:
        logger.warning("Could not place annotation in %s: %s", path, e)
        return False
    if updated == source.text:
        return True
    return _write(path, updated, source.crlf)


class SourceText(NamedTuple):
    """File content normalised to LF; `crlf` says whether to convert back on write."""

    text: str
    crlf: bool


def _read(path: str) -> Optional[SourceText]:
    try:
        with open(path, encoding="utf-8", newline="") as fh:
            raw = fh.read()
    except (OSError, UnicodeError) as e:
        logger.warning("Could not read %s: %s", path, e)
        return None
    if "\r\n" in raw:
        return SourceText(raw.replace("\r\n", "\n"), True)
    return SourceText(raw, False)


def _write(path: str, content: str, crlf: bool = False) -> bool:
    if crlf:
        content = content.replace("\n", "\r\n")
    try:
        with open(path, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
    except (OSError, UnicodeError) as e:
        logger.warning("Could not write %s: %s", path, e)
        return False
    return True

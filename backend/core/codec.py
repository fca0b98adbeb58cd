"""
Annotation block codec.

Renders assembled content into a delimited `#` comment block and finds or
strips a previously rendered block in file text. A block only counts when
both exact marker lines are present, begin before end; anything partial is
treated as absent and left untouched.
"""
import re
from typing import Optional

from models.annotation import AnnotationBlock, PipelineResult

MARKER_FORMAT = "schema-lens:schema"

_ANY_BEGIN = re.compile(rf"^# <{re.escape(MARKER_FORMAT)}:begin(?: (?P<tag>[^<>]+))?>$")


class AnnotationCodec:
    """Codec for one marker pair. `tag` scopes the markers to a single model."""

    def __init__(self, tag: Optional[str] = None):
        self.tag = tag

    @property
    def begin_marker(self) -> str:
        return f"# <{MARKER_FORMAT}:begin{self._suffix}>"

    @property
    def end_marker(self) -> str:
        return f"# <{MARKER_FORMAT}:end{self._suffix}>"

    @property
    def _suffix(self) -> str:
        return f" {self.tag}" if self.tag else ""

    # ── Rendering ─────────────────────────────────────────────────────────────

    def render(self, body: str) -> str:
        """Wrap body text in markers, commenting every line. Empty body renders nothing."""
        if not body.strip():
            return ""
        lines = [self.begin_marker]
        for line in body.split("\n"):
            line = line.rstrip()
            lines.append(f"# {line}" if line else "#")
        lines.append(self.end_marker)
        return "\n".join(lines)

    # ── Parsing ───────────────────────────────────────────────────────────────

    def extract(self, text: str) -> Optional[str]:
        """Return the uncommented body of the first well-formed block, or None."""
        block = self.extract_block(text)
        return block.body_text if block else None

    def extract_block(self, text: str) -> Optional[AnnotationBlock]:
        lines = text.split("\n")
        span = self._span(lines)
        if span is None:
            return None
        start, end = span
        body = "\n".join(_uncomment(line) for line in lines[start + 1:end])
        return AnnotationBlock(begin_marker=self.begin_marker, end_marker=self.end_marker, body_text=body)

    def remove(self, text: str) -> str:
        """Strip every well-formed block; text without one is returned unchanged."""
        lines = text.split("\n")
        removed = False
        span = self._span(lines)
        while span is not None:
            start, end = span
            del lines[start:end + 1]
            removed = True
            span = self._span(lines)
        return "\n".join(lines) if removed else text

    def _span(self, lines: list[str]) -> Optional[tuple[int, int]]:
        start = None
        for i, line in enumerate(lines):
            stripped = line.strip()
            if stripped == self.begin_marker:
                start = i
            elif stripped == self.end_marker and start is not None:
                return start, i
        return None


def remove_any(text: str) -> str:
    """Strip every well-formed schema-lens block, whatever its tag."""
    lines = text.split("\n")
    i = 0
    removed = False
    while i < len(lines):
        m = _ANY_BEGIN.match(lines[i].strip())
        if m:
            end_marker = AnnotationCodec(m.group("tag")).end_marker
            end = next(
                (j for j in range(i + 1, len(lines)) if lines[j].strip() == end_marker),
                None,
            )
            if end is not None:
                del lines[i:end + 1]
                removed = True
                continue
        i += 1
    return "\n".join(lines) if removed else text


def has_any_block(text: str) -> bool:
    return remove_any(text) != text


def assemble(result: PipelineResult) -> str:
    """Lay out schema dump, sections and notes as block body text."""
    lines: list[str] = []
    if result.schema_text:
        lines.extend(result.schema_text.split("\n"))
    for section in result.sections:
        if not section.content:
            continue
        lines.append("")
        if section.title:
            lines.append(section.title)
        lines.extend(section.content.split("\n"))
    if result.notes:
        lines.append("")
        lines.append("== Notes")
        lines.extend(f"- {n}" for n in result.notes)
    while lines and not lines[0].strip():
        lines.pop(0)
    return "\n".join(lines)


def parse_sections(body: str) -> dict[str, str]:
    """Split block body text into {"== Title": content} for each titled section."""
    sections: dict[str, str] = {}
    current = None
    content: list[str] = []
    for line in body.split("\n"):
        if re.match(r"^==\s+\S", line):
            if current:
                sections[current] = "\n".join(content).strip()
            current = line.strip()
            content = []
        else:
            content.append(line)
    if current:
        sections[current] = "\n".join(content).strip()
    return sections


def _uncomment(line: str) -> str:
    line = line.strip()
    if line.startswith("# "):
        return line[2:]
    return line[1:] if line.startswith("#") else line

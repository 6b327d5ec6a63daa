"""Subtitle restyling before burn-in.

Handles:
- JSON-wrapped payloads ({"ass": "..."} or [{"ass": "..."}, ...])
- Bigger style font sizes (grown by a delta, capped)
- A fixed vertical margin so subtitles sit higher on a portrait frame
- Underline forced off

Columns are located through each section's ``Format:`` line, so files with
reordered or missing columns are handled without positional guessing.
"""

import json
import logging
import re
from dataclasses import dataclass

from composer.exceptions import SubtitleProcessingFailed

logger = logging.getLogger(__name__)

PROCESSED_SUFFIX = "_processed.ass"

_SECTION_RE = re.compile(r"^\s*\[(?P<name>[^\]]+)\]\s*$")
_ROW_RE = re.compile(r"^(?P<prefix>\s*(?P<key>[A-Za-z]+)\s*:\s*)(?P<body>.*)$", re.DOTALL)

_ASS_SECTIONS = {"script info", "v4+ styles", "v4 styles", "events"}
_STYLE_SECTIONS = {"v4+ styles", "v4 styles"}
_EVENT_ROW_KEYS = {"dialogue", "comment"}


@dataclass(frozen=True)
class StyleRewriteRules:
    """Fixed adjustments applied to every subtitle file."""

    font_size_delta: int = 16
    font_size_max: int = 72
    margin_v: int = 180


def processed_subtitle_path(subtitle_path: str) -> str:
    """Path the rewritten file is written to (distinct from the input)."""
    return f"{subtitle_path}{PROCESSED_SUFFIX}"


def unwrap_subtitle_payload(content: str) -> str:
    """Extract the ASS text from a JSON wrapper, or return content verbatim.

    Never raises: anything that is not the expected wrapper shape, including
    malformed JSON, is treated as raw subtitle text.
    """
    try:
        parsed = json.loads(content)
    except (ValueError, RecursionError):
        return content

    if isinstance(parsed, dict):
        candidate = parsed.get("ass")
    elif isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
        candidate = parsed[0].get("ass")
    else:
        candidate = None

    if isinstance(candidate, str) and candidate:
        return candidate
    return content


def _split_line_ending(line: str) -> tuple[str, str]:
    stripped = line.rstrip("\r\n")
    return stripped, line[len(stripped):]


def _parse_format(body: str) -> list[str]:
    return [column.strip().lower() for column in body.split(",")]


def _split_row(body: str, columns: list[str], line_number: int) -> list[str]:
    # The last column (Text / Encoding) may itself contain commas
    fields = body.split(",", len(columns) - 1)
    if len(fields) < len(columns):
        raise SubtitleProcessingFailed(
            f"Subtitle line {line_number} has {len(fields)} fields, expected {len(columns)}"
        )
    return fields


def _format_number(value: float) -> str:
    return str(int(value)) if value == int(value) else f"{value:g}"


def _grow_font_size(raw: str, rules: StyleRewriteRules, line_number: int) -> str:
    try:
        size = float(raw.strip())
    except ValueError:
        raise SubtitleProcessingFailed(
            f"Subtitle line {line_number} has a non-numeric Fontsize: {raw.strip()!r}"
        )
    if size >= rules.font_size_max:
        return raw
    return _format_number(min(size + rules.font_size_delta, rules.font_size_max))


def rewrite_ass_styles(content: str, rules: StyleRewriteRules | None = None) -> str:
    """
    Apply the style rules to ASS/SSA subtitle text.

    Args:
        content: Raw subtitle text (already unwrapped)
        rules: Adjustments to apply (defaults to StyleRewriteRules())

    Returns:
        Rewritten subtitle text with line endings preserved

    Raises:
        SubtitleProcessingFailed: If the structural fields cannot be parsed
    """
    rules = rules or StyleRewriteRules()

    if not content.strip():
        raise SubtitleProcessingFailed("Subtitle file is empty")

    section: str | None = None
    seen_ass_section = False
    columns: list[str] | None = None
    output: list[str] = []

    for line_number, raw_line in enumerate(content.splitlines(keepends=True), start=1):
        line, ending = _split_line_ending(raw_line)

        section_match = _SECTION_RE.match(line.lstrip("\ufeff"))
        if section_match:
            section = section_match.group("name").strip().lower()
            seen_ass_section = seen_ass_section or section in _ASS_SECTIONS
            columns = None
            output.append(raw_line)
            continue

        row_match = _ROW_RE.match(line)
        if (section not in _STYLE_SECTIONS and section != "events") or not row_match:
            output.append(raw_line)
            continue

        key = row_match.group("key").lower()
        prefix = row_match.group("prefix")
        body = row_match.group("body")

        if key == "format":
            columns = _parse_format(body)
            output.append(raw_line)
            continue

        is_style_row = section in _STYLE_SECTIONS and key == "style"
        is_event_row = section == "events" and key in _EVENT_ROW_KEYS
        if not (is_style_row or is_event_row):
            output.append(raw_line)
            continue

        if columns is None:
            raise SubtitleProcessingFailed(
                f"Subtitle line {line_number} appears before its section's Format line"
            )

        fields = _split_row(body, columns, line_number)
        for index, column in enumerate(columns):
            if column == "marginv":
                fields[index] = str(rules.margin_v)
            elif is_style_row and column == "fontsize":
                fields[index] = _grow_font_size(fields[index], rules, line_number)
            elif is_style_row and column == "underline":
                fields[index] = "0"

        output.append(prefix + ",".join(fields) + ending)

    if not seen_ass_section:
        raise SubtitleProcessingFailed("Subtitle payload has no ASS sections")

    return "".join(output)


def process_subtitle_file(
    subtitle_path: str,
    rules: StyleRewriteRules | None = None,
) -> str:
    """
    Read, unwrap, restyle and write a subtitle file.

    Args:
        subtitle_path: Uploaded subtitle file
        rules: Style adjustments

    Returns:
        Path of the newly written file

    Raises:
        SubtitleProcessingFailed: If the file cannot be read, parsed or written
    """
    try:
        with open(subtitle_path, encoding="utf-8-sig", newline="") as f:
            content = f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"[SUBTITLE] Could not read {subtitle_path}: {e}")
        raise SubtitleProcessingFailed(f"Failed to read subtitle file: {e}") from e

    ass_content = unwrap_subtitle_payload(content)
    rewritten = rewrite_ass_styles(ass_content, rules)

    output_path = processed_subtitle_path(subtitle_path)
    try:
        with open(output_path, "w", encoding="utf-8", newline="") as f:
            f.write(rewritten)
    except OSError as e:
        logger.error(f"[SUBTITLE] Could not write {output_path}: {e}")
        raise SubtitleProcessingFailed(f"Failed to write processed subtitle file: {e}") from e

    logger.info(f"[SUBTITLE] Subtitle processed: {output_path}")
    return output_path

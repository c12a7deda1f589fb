from __future__ import annotations

from typing import Iterable

from .types import ParsedFile, RawRow


UTF8_BOM = b"\xef\xbb\xbf"      # spreadsheet exports prepend this

_QUOTE = '"'
_DELIM = ","
_NEEDS_QUOTING = (_QUOTE, _DELIM, "\r", "\n")
_LEADING_BLANKS = (" ", "\t")


class MalformedInputError(Exception):
    """File content can not be tokenized into a header plus data rows."""


def parse(content: bytes) -> ParsedFile:
    """
    Tokenize raw CSV bytes into a `ParsedFile`.

    - a leading UTF-8 BOM is dropped,
    - records end on `\\r\\n` or `\\n` unless the line break sits inside a quoted field
      (unbalanced quoting falls back to plain line breaks),
    - records that are blank after trimming are skipped,
    - the first record is the header (names trimmed), the rest are data rows.

    Field values are left untrimmed. Rows are not checked against the header width.
    Raises `MalformedInputError` when fewer than 2 non-blank records exist
    or the bytes are not UTF-8.
    """
    if content.startswith(UTF8_BOM):
        content = content[len(UTF8_BOM):]
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedInputError(f"CSV file is not valid UTF-8: {e}") from e

    records = [r for r in split_records(text) if r.strip()]
    if len(records) < 2:
        raise MalformedInputError("CSV file must have at least a header row and one data row")

    header = tuple(name.strip() for name in parse_record(records[0]))
    rows: list[RawRow] = [parse_record(r) for r in records[1:]]
    return ParsedFile(header=header, rows=rows)


def split_records(text: str) -> list[str]:
    """
    Raw record strings, one per logical line.

    Line breaks inside an open quoted field belong to the field. A `"` only
    opens quoting at the start of a field, elsewhere it is a literal character.
    A `\\r` directly before a record-ending `\\n` is dropped.

    If a quoted field is still open at the end of the text the quoting is
    unbalanced, and the text is split on plain line breaks instead.
    """
    records: list[str] = []
    buf: list[str] = []
    in_quotes = False
    at_field_start = True
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_quotes:
            if ch == _QUOTE:
                if i + 1 < n and text[i + 1] == _QUOTE:
                    buf.append(ch)
                    i += 1
                else:
                    in_quotes = False
            buf.append(ch)
        elif ch == "\n":
            if buf and buf[-1] == "\r":
                buf.pop()
            records.append("".join(buf))
            buf = []
            at_field_start = True
        else:
            if ch == _QUOTE and at_field_start:
                in_quotes = True
                at_field_start = False
            elif ch == _DELIM:
                at_field_start = True
            elif ch not in _LEADING_BLANKS:
                at_field_start = False
            buf.append(ch)
        i += 1

    if in_quotes:
        return split_lines(text)
    if buf and buf[-1] == "\r":
        buf.pop()
    if buf:
        records.append("".join(buf))
    return records


def split_lines(text: str) -> list[str]:
    """Plain `\\r\\n` / `\\n` split, ignoring quotes."""
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [ln[:-1] if ln.endswith("\r") else ln for ln in lines]


def parse_record(line: str) -> RawRow:
    """
    Split one record into fields, honoring `"` quoting and `""` escapes.

    Same quoting rule as `split_records`: a quote that does not start a field
    (leading blanks allowed) is kept as text, so `5" tall` stays one value.
    """
    fields: list[str] = []
    current: list[str] = []
    in_quotes = False
    at_field_start = True
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if in_quotes:
            if ch == _QUOTE:
                if i + 1 < n and line[i + 1] == _QUOTE:
                    # escaped literal quote
                    current.append(_QUOTE)
                    i += 2
                    continue
                in_quotes = False
            else:
                current.append(ch)
        elif ch == _QUOTE and at_field_start:
            in_quotes = True
            at_field_start = False
        elif ch == _DELIM:
            fields.append("".join(current))
            current = []
            at_field_start = True
        else:
            if ch not in _LEADING_BLANKS:
                at_field_start = False
            current.append(ch)
        i += 1

    fields.append("".join(current))
    return tuple(fields)


## -- writing

def format_field(value: str) -> str:
    """Quote a single value when it holds a delimiter, quote or line break."""
    if any(c in value for c in _NEEDS_QUOTING) or value != value.strip():
        return _QUOTE + value.replace(_QUOTE, _QUOTE * 2) + _QUOTE
    return value


def format_row(values: Iterable[str]) -> str:
    """Join values into one record. `parse_record(format_row(v)) == tuple(v)`."""
    return _DELIM.join(format_field(v) for v in values)

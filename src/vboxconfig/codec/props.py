"""Key/value extraction from VBoxManage text output."""
from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, Iterator, Optional, Sequence, TextIO, Union

from ..errors import ParseError, ProtocolError

LOGGER = logging.getLogger(__name__)

Stream = Union[str, TextIO, Iterable[str]]
PropMap = Dict[str, str]

_VMINFO_LINE_RE = re.compile(r'(?:"([^"]+)"|([^=]+))=(?:"(.*)"|(.*))')
_COLON_LINE_RE = re.compile(r"(.+?):\s+(.*)")
_UINT_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"[-+]?[0-9]+")


def iter_lines(stream: Stream) -> Iterator[str]:
    source = stream.splitlines() if isinstance(stream, str) else stream
    try:
        for line in source:
            yield line.rstrip("\r\n")
    except (OSError, UnicodeDecodeError) as exc:
        raise ParseError(f"error reading VBoxManage output: {exc}") from exc


def parse_machine_readable(stream: Stream) -> PropMap:
    """Read ``key="value"`` / ``key=value`` lines into a flat property map."""
    props: PropMap = {}
    for line in iter_lines(stream):
        match = _VMINFO_LINE_RE.match(line)
        if match is None:
            continue
        key = match.group(1) or match.group(2)
        props[key] = match.group(3) or match.group(4) or ""
    return props


def parse_colon_records(
    stream: Stream,
    name_keys: Sequence[str],
    *,
    case_insensitive: bool = False,
) -> Dict[str, PropMap]:
    """Group ``Key:   value`` blocks separated by blank lines into named records.

    The record name is taken from the first of ``name_keys`` present in it.
    """
    if case_insensitive:
        name_keys = [key.lower() for key in name_keys]
    records: Dict[str, PropMap] = {}
    current: PropMap = {}

    def flush() -> None:
        if not current:
            return
        name = _record_name(current, name_keys)
        if name in records:
            raise ProtocolError(
                f"duplicate record {name!r} in listing (already parsed: {', '.join(records)})"
            )
        records[name] = dict(current)
        current.clear()

    for line in iter_lines(stream):
        if not line.strip():
            flush()
            continue
        match = _COLON_LINE_RE.match(line)
        if match is None:
            continue
        key, value = match.group(1).strip(), match.group(2).strip()
        if case_insensitive:
            key = key.lower()
        current[key] = value
    flush()
    LOGGER.debug("Parsed %d record(s) keyed by %s", len(records), "/".join(name_keys))
    return records


def _record_name(record: PropMap, name_keys: Sequence[str]) -> str:
    for key in name_keys:
        name = record.get(key)
        if name:
            return name
    raise ProtocolError(f"record without a name (expected one of {', '.join(name_keys)}): {record}")


def parse_int(props: PropMap, key: str) -> int:
    raw: Optional[str] = props.get(key)
    if raw is None:
        raise ParseError("missing required integer field", key=key, value=raw)
    if not _INT_RE.fullmatch(raw):
        raise ParseError("expected an integer", key=key, value=raw)
    return int(raw)


def parse_uint(props: PropMap, key: str) -> int:
    raw: Optional[str] = props.get(key)
    if raw is None:
        raise ParseError("missing required integer field", key=key, value=raw)
    if not _UINT_RE.fullmatch(raw):
        raise ParseError("expected an unsigned integer", key=key, value=raw)
    return int(raw)


def on_off(value: Optional[str]) -> bool:
    return value == "on"


def bool_to_on_off(value: bool) -> str:
    return "on" if value else "off"

"""Ordered, de-duplicated VBoxManage argument lists with an override layer."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

ToParts = Callable[[str, str], List[str]]


@dataclass(frozen=True)
class CmdArg:
    """A command line option.

    ``value`` is ``None`` for flag-only options; an empty string is a real
    value. ``to_parts`` expands key and value into several tokens, and
    ``deleted`` keeps the key's slot while dropping it from the output.
    """

    key: str
    value: Optional[str] = None
    to_parts: Optional[ToParts] = None
    deleted: bool = False

    @classmethod
    def deletion(cls, key: str) -> "CmdArg":
        return cls(key=key, deleted=True)

    def tokens(self) -> List[str]:
        if self.value is None:
            return [self.key]
        if self.to_parts is None:
            return [self.key, self.value]
        return list(self.to_parts(self.key, self.value))


def split_value(key: str, value: str) -> List[str]:
    """Expand ``"0x03f8 4"`` style values into separate tokens."""
    return [key, *value.split(" ", 1)]


class CmdArgs:
    def __init__(self) -> None:
        self._args: List[CmdArg] = []
        self._overrides: List[CmdArg] = []

    def append(self, key: str, value: str) -> None:
        self._args.append(CmdArg(key, value))

    def append_no_value(self, key: str) -> None:
        self._args.append(CmdArg(key))

    def append_args(self, *args: CmdArg) -> None:
        self._args.extend(args)

    def append_override(self, *args: CmdArg) -> None:
        self._overrides.extend(args)

    def args(self) -> List[str]:
        # Each key appears once: positioned where first seen, valued by its last occurrence.
        latest: Dict[str, CmdArg] = {}
        for arg in [*self._args, *self._overrides]:
            latest[arg.key] = arg
        tokens: List[str] = []
        for arg in latest.values():
            if arg.deleted:
                continue
            tokens.extend(arg.tokens())
        return tokens

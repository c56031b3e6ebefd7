"""Exception types raised while decoding VBoxManage output or running it."""
from __future__ import annotations

from typing import Iterable, Optional, Sequence


class VBoxError(RuntimeError):
    """Base class for every error raised by vboxconfig."""


class ParseError(VBoxError):
    """Text did not have the expected shape for a required field."""

    def __init__(self, message: str, *, key: Optional[str] = None, value: Optional[str] = None) -> None:
        if key is not None:
            message = f"{message} (key={key!r}, value={value!r})"
        super().__init__(message)
        self.key = key
        self.value = value


class UnsupportedValueError(ParseError):
    """A value lies outside a closed vocabulary (mode, type, bus, chipset...)."""

    def __init__(
        self,
        what: str,
        value: str,
        supported: Iterable[str],
        *,
        key: Optional[str] = None,
    ) -> None:
        self.supported = list(supported)
        super().__init__(
            f"unsupported {what} {value!r}; supported are: {', '.join(self.supported)}",
            key=key,
            value=value,
        )


class ProtocolError(VBoxError):
    """Output is internally inconsistent (duplicate record, missing paired key)."""


class AggregateValidationError(ExceptionGroup):
    """Every independent validation failure of a multi-field constructor."""


class CommandError(VBoxError):
    """The management program exited with a non-zero status."""

    def __init__(
        self,
        args: Sequence[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(
            f"{' '.join(args)} failed with exit code {returncode}: {stderr.strip() or stdout.strip()}"
        )
        self.cmd = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class CommandNotFoundError(VBoxError):
    """The management program could not be executed at all."""


class MachineNotFoundError(VBoxError):
    """No registered machine matches the given name or UUID."""


class MachineExistsError(VBoxError):
    """A machine with the requested name is already registered."""

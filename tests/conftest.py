from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple, Union

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


Response = Union[str, Exception]


class FakeManage:
    """Stands in for Manage: records every call and replays canned output.

    Responses are looked up by the full argument tuple; a list of responses is
    consumed one call at a time. Unknown commands succeed with empty output.
    """

    def __init__(self, guest: bool = False) -> None:
        self.guest = guest
        self.sudo = False
        self.calls: List[Tuple[str, ...]] = []
        self.sudo_calls: List[Tuple[str, ...]] = []
        self.responses: Dict[Tuple[str, ...], Union[Response, List[Response]]] = {}

    @property
    def is_guest(self) -> bool:
        return self.guest

    def with_sudo(self) -> "FakeManage":
        clone = FakeManage(self.guest)
        clone.sudo = True
        clone.calls = self.calls
        clone.sudo_calls = self.sudo_calls
        clone.responses = self.responses
        return clone

    def respond(self, args: Tuple[str, ...], *responses: Response) -> None:
        self.responses[args] = list(responses) if len(responses) > 1 else responses[0]

    def _out(self, args: Tuple[str, ...]) -> str:
        self.calls.append(args)
        if self.sudo:
            self.sudo_calls.append(args)
        response = self.responses.get(args, "")
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response

    def run(self, *args: str) -> None:
        self._out(args)

    def run_out(self, *args: str) -> str:
        return self._out(args)

    def run_out_err(self, *args: str) -> Tuple[str, str]:
        return self._out(args), ""

    def show_vm_info(self, vm: str) -> str:
        return self._out(("showvminfo", vm, "--machinereadable"))


@pytest.fixture
def fake_manage() -> FakeManage:
    return FakeManage()


@pytest.fixture
def vminfo_text() -> str:
    return read_fixture("showvminfo.txt")

"""Test configuration: puts the repo root on sys.path and provides ELF fixtures."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parent.parent

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

import symbind  # noqa: E402
from symbind import ToolResult  # noqa: E402


TRIPLE = "x86_64-unknown-linux-gnu"

ADD_LL = """\
define i32 @add(i32 %a, i32 %b) {
entry:
  %r = call i32 @add_helper(i32 %a, i32 %b)
  ret i32 %r
}

define i32 @add_helper(i32 %a, i32 %b) {
entry:
  %r = add i32 %a, %b
  ret i32 %r
}
"""

MIXED_LL = """\
declare i32 @external_fn(i32)

define i32 @first(i32 %x) {
entry:
  %r = call i32 @local_twice(i32 %x)
  ret i32 %r
}

define i32 @second(i32 %x) {
entry:
  %r = call i32 @external_fn(i32 %x)
  ret i32 %r
}

define internal i32 @local_twice(i32 %x) {
entry:
  %r = mul i32 %x, 2
  ret i32 %r
}
"""

BSS_LL = """\
@counter = global i32 0

define i32 @bump() {
entry:
  ret i32 1
}
"""

DATA_LL = """\
@seed = global i32 7

define i32 @get_seed() {
entry:
  ret i32 7
}
"""

EMPTY_LL = """\
; no functions at all
"""


@pytest.fixture
def write_ll(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def emit_elf(write_ll) -> Callable[[str, str], Path]:
    """Compile IR text to a relocatable ELF object in-process."""
    def _emit(name: str, text: str) -> Path:
        src = write_ll(name + ".ll", text)
        out = src.with_suffix(".o")
        symbind.emit_object(src, TRIPLE, out)
        return out
    return _emit


def require_tool(name: str) -> str:
    path = shutil.which(name)
    if path is None:
        pytest.skip(f"{name} not available")
    return path


def require_objcopy() -> str:
    return require_tool("objcopy")


class FakeRunner:
    """
    Stands in for llc / ld / opt / objcopy.

    llc really compiles (through llvmlite), ld copies the object, opt replies
    with canned annotation records, objcopy records the manifest payload.
    """

    def __init__(self, annotations: bytes = b"", fail: Optional[Dict[str, bytes]] = None, pass_stream: str = "stdout"):
        self.annotations = annotations
        self.fail = fail or {}
        self.pass_stream = pass_stream
        self.calls: List[List[str]] = []
        self.timeouts: List[Optional[float]] = []
        self.manifests: List[bytes] = []
        self.scratch: List[Path] = []
        self.linker_scripts: List[str] = []

    def __call__(self, cmd: List[str], stdin: Optional[bytes] = None, timeout: Optional[float] = None) -> ToolResult:
        self.calls.append(list(cmd))
        self.timeouts.append(timeout)
        tool = cmd[0]

        if tool in self.fail:
            return ToolResult(tool, list(cmd), 1, b"", self.fail[tool])

        if tool == "llc":
            triple = next(a for a in cmd if a.startswith("-mtriple=")).split("=", 1)[1]
            out = Path(cmd[cmd.index("-o") + 1])
            self.scratch.append(out)
            symbind.emit_object(Path(cmd[-3]), triple, out)
        elif tool == "ld":
            script = Path(cmd[1][len("-T"):])
            self.linker_scripts.append(script.read_text(encoding="utf-8"))
            self.scratch.append(script)
            shutil.copyfile(cmd[2], cmd[cmd.index("-o") + 1])
        elif tool == "opt":
            if self.pass_stream == "stderr":
                return ToolResult(tool, list(cmd), 0, b"\x42\x43", self.annotations)
            return ToolResult(tool, list(cmd), 0, self.annotations, b"")
        elif tool == "objcopy":
            _, payload = cmd[2].split("=", 1)
            self.scratch.append(Path(payload))
            self.manifests.append(Path(payload).read_bytes())

        return ToolResult(tool, list(cmd), 0, b"", b"")

    def tools_called(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def fake_runner() -> Callable[..., FakeRunner]:
    return FakeRunner


@pytest.fixture
def std_dir(tmp_path: Path) -> Path:
    d = tmp_path / "stdlib"
    d.mkdir()
    (d / "string.ll").write_text(EMPTY_LL, encoding="utf-8")
    return d


@pytest.fixture
def make_config(std_dir: Path):
    def _make(**kw) -> symbind.BuildConfig:
        kw.setdefault("std_path", std_dir)
        kw.setdefault("arch_triples", {"x86_64": TRIPLE})
        return symbind.BuildConfig(**kw)
    return _make

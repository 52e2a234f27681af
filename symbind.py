#!/usr/bin/env python3
"""
symbind.py

Stage-2 module builder: LLVM IR (or a prebuilt ELF object) -> fixed-address
ELF binary carrying a `.manifest` section.

Contract:
- Code is linked with .text at 0x800000. The runtime's symbol-resolution
  call table is pinned at `call = 0x700000`, identical for every module.
- Every output binary gets a `.manifest` section holding compact JSON:
    {"ModuleName": "add",
     "SymbolTable": [{"Name": "add", "Offset": 8388608, "ABI": 1, "Visibility": 0}]}
  ABI:        0 = C (raw binaries), 1 = SOS (compiled from IR)
  Visibility: 0 = Public, 1 = Private
- Output binaries must not contain .data* / .bss* sections (modules are
  stateless; the runtime calls into them re-entrantly from many tenants).

Pipeline per (module, arch):
    llc -> ld -T<script> -> symtab + AnnotationPass -> join -> objcopy -> check

Usage:
  python symbind.py add.ll
  python symbind.py --merge-data --arch x86_64 --arch arm a.ll b.bc
  python symbind.py --just-manifest prebuilt.o
  python symbind.py --print-manifest add-x86_64.o
"""

from __future__ import annotations

import argparse
import contextlib
import enum
import json
import logging
import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import SymbolTableSection
from llvmlite import binding as llvm


log = logging.getLogger("symbind")


# -----------------------------
# Errors
# -----------------------------

class Stage2Error(Exception):
    """Base class for every failure that aborts a module build."""


class ConfigError(Stage2Error):
    pass


class ToolError(Stage2Error):
    """An external tool exited non-zero (or could not be run at all)."""

    def __init__(self, tool: str, cmd: Sequence[str], returncode: Optional[int], stderr: bytes, reason: str = ""):
        self.tool = tool
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.decode("utf-8", errors="replace").strip()
        if not reason:
            reason = f"exited with status {returncode}"
        msg = f"{tool} {reason}"
        if detail:
            msg += f":\n{detail}"
        super().__init__(msg)


class AnnotationFormatError(Stage2Error):
    def __init__(self, reason: str, line: str, raw: bytes):
        self.line = line
        self.raw = raw
        super().__init__(
            f"annotation pass returned data in invalid format ({reason}): {line!r}\n"
            f"--- pass output ---\n{raw.decode('utf-8', errors='replace')}"
        )


class BinaryFormatError(Stage2Error):
    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"{path}: not a readable ELF file: {reason}")


class MissingSectionError(Stage2Error):
    def __init__(self, path: Path, section: str):
        self.path = path
        self.section = section
        super().__init__(f"{path}: {section} section is missing")


class StatefulBinaryError(Stage2Error):
    def __init__(self, path: Path, section: str, symbols: List[str]):
        self.path = path
        self.section = section
        self.symbols = symbols
        super().__init__(
            f"{path}: code contains data section {section} with following symbols {symbols}"
        )


class ManifestError(Stage2Error):
    pass


# -----------------------------
# Manifest model
# -----------------------------

class ABI(enum.IntEnum):
    C = 0
    SOS = 1


class Visibility(enum.IntEnum):
    PUBLIC = 0
    PRIVATE = 1


VISIBILITY_TOKENS: Dict[str, Visibility] = {
    "public": Visibility.PUBLIC,
    "private": Visibility.PRIVATE,
}


@dataclass(frozen=True)
class SymbolTableEntry:
    name: str
    offset: int = 0
    abi: ABI = ABI.C
    visibility: Visibility = Visibility.PUBLIC

    def to_json(self) -> Dict[str, Any]:
        return {
            "Name": self.name,
            "Offset": int(self.offset),
            "ABI": int(self.abi),
            "Visibility": int(self.visibility),
        }

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "SymbolTableEntry":
        if not isinstance(obj, dict):
            raise ManifestError(f"bad symbol table entry {obj!r}: not an object")
        name = obj.get("Name")
        if not isinstance(name, str) or not name:
            raise ManifestError(f"bad symbol table entry {obj!r}: Name must be a non-empty string")
        offset = _json_uint(obj, "Offset")
        try:
            return cls(
                name=name,
                offset=offset,
                abi=ABI(_json_uint(obj, "ABI")),
                visibility=Visibility(_json_uint(obj, "Visibility")),
            )
        except ValueError as exc:
            raise ManifestError(f"bad symbol table entry {obj!r}: {exc}") from exc


def _json_uint(obj: Dict[str, Any], key: str) -> int:
    value = obj.get(key, 0)
    # bool is an int subclass; 1.5 and -1 are not offsets or tags
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ManifestError(f"bad symbol table entry {obj!r}: {key} must be an unsigned integer")
    return value


SymbolTable = List[SymbolTableEntry]


@dataclass
class Manifest:
    module_name: str
    symbol_table: SymbolTable = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {
            "ModuleName": self.module_name,
            "SymbolTable": [e.to_json() for e in self.symbol_table],
        }

    def serialize(self) -> bytes:
        return json.dumps(self.to_json(), separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    @classmethod
    def deserialize(cls, data: bytes) -> "Manifest":
        try:
            obj = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ManifestError(f"manifest is not valid JSON: {exc}") from exc
        if not isinstance(obj, dict) or not isinstance(obj.get("ModuleName"), str):
            raise ManifestError(f"manifest has no ModuleName: {data[:200]!r}")
        # older builds wrote null for an empty table
        entries = obj.get("SymbolTable") or []
        if not isinstance(entries, list):
            raise ManifestError(f"manifest SymbolTable is not a list: {data[:200]!r}")
        return cls(
            module_name=obj["ModuleName"],
            symbol_table=[SymbolTableEntry.from_json(e) for e in entries],
        )


def build_manifest(module_name: str, table: SymbolTable) -> Manifest:
    seen = set()
    for entry in table:
        if entry.name in seen:
            raise ManifestError(f"duplicate symbol {entry.name!r} in manifest for {module_name}")
        seen.add(entry.name)
    return Manifest(module_name=module_name, symbol_table=list(table))


def module_name_for(path: Path) -> str:
    return path.stem


# -----------------------------
# Configuration
# -----------------------------

ARCH_TRIPLES: Dict[str, str] = {
    "x86_64": "x86_64-none-gnu",
    "arm": "arm-none-gnueabihf",
}

IR_SUFFIXES = (".bc", ".ll")


@dataclass(frozen=True)
class BuildConfig:
    archs: Tuple[str, ...] = ("x86_64",)
    arch_triples: Dict[str, str] = field(default_factory=lambda: dict(ARCH_TRIPLES))
    merge_data: bool = False
    just_manifest: bool = False
    output_linked_ll: bool = False
    std_path: Path = Path("stdlib")
    pass_path: Path = Path("stage2/passes")
    codegen: str = "llc"            # "llc" or "llvmlite"
    opt_level: int = 2
    pass_output: str = "stdout"     # stream the annotation pass writes its records to
    tool_timeout: Optional[float] = None
    keep_going: bool = False
    llc: str = "llc"
    ld: str = "ld"
    opt: str = "opt"
    objcopy: str = "objcopy"

    def triple_for(self, arch: str) -> str:
        try:
            return self.arch_triples[arch]
        except KeyError:
            known = ", ".join(sorted(self.arch_triples))
            raise ConfigError(f"unknown architecture {arch!r} (known: {known})") from None


# -----------------------------
# External tools
# -----------------------------

@dataclass
class ToolResult:
    tool: str
    args: List[str]
    returncode: int
    stdout: bytes = b""
    stderr: bytes = b""


ToolRunner = Callable[[List[str], Optional[bytes], Optional[float]], ToolResult]


def run_tool(cmd: List[str], stdin: Optional[bytes] = None, timeout: Optional[float] = None) -> ToolResult:
    """Run one external program to completion, capturing both streams."""
    log.debug("+ %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, input=stdin, capture_output=True, timeout=timeout)
    except FileNotFoundError:
        raise ToolError(cmd[0], cmd, None, b"", "not found on PATH") from None
    except subprocess.TimeoutExpired as exc:
        raise ToolError(cmd[0], cmd, None, exc.stderr or b"", f"timed out after {timeout}s") from None
    return ToolResult(cmd[0], list(cmd), proc.returncode, proc.stdout, proc.stderr)


class Toolchain:
    """Binds a BuildConfig to a tool runner; every external call goes through here."""

    def __init__(self, config: BuildConfig, runner: ToolRunner = run_tool):
        self.config = config
        self.runner = runner

    def run(self, cmd: List[str], stdin: Optional[bytes] = None) -> ToolResult:
        res = self.runner(cmd, stdin, self.config.tool_timeout)
        if res.returncode != 0:
            raise ToolError(res.tool, res.args, res.returncode, res.stderr)
        return res


@contextlib.contextmanager
def scratch_file(suffix: str) -> Iterator[Path]:
    fd, name = tempfile.mkstemp(prefix="symbind-", suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        path.unlink(missing_ok=True)


# -----------------------------
# Linker script
# -----------------------------

CALL_TABLE_ADDR = 0x700000
TEXT_BASE = 0x800000


def linker_script(merge_data: bool) -> str:
    if merge_data:
        rodata_inputs = ".rodata .rodata.* .data .data.*"
    else:
        # .data/.bss stay separate output sections so check_stateless sees them
        rodata_inputs = ".rodata .rodata.*"
    return (
        f"call = {CALL_TABLE_ADDR:#x};\n"
        "SECTIONS\n"
        "{\n"
        f"  . = {TEXT_BASE:#x};\n"
        "  .text : {*(.text)}\n"
        f"  .rodata ALIGN(0x1000): {{*({rodata_inputs})}}\n"
        "}\n"
    )


@contextlib.contextmanager
def materialized_linker_script(merge_data: bool) -> Iterator[Path]:
    with scratch_file(".lds") as path:
        path.write_text(linker_script(merge_data), encoding="utf-8")
        yield path


# -----------------------------
# Code generation + link
# -----------------------------

def output_path_for(source: Path, arch: str) -> Path:
    return source.with_name(f"{source.stem}-{arch}.o")


def _init_llvm_targets() -> None:
    llvm.initialize_all_targets()
    llvm.initialize_all_asmprinters()


def parse_ir_module(source: Path) -> llvm.ModuleRef:
    """Parse a .ll (text) or .bc (bitcode) file with llvmlite."""
    try:
        if source.suffix == ".bc":
            mod = llvm.parse_bitcode(source.read_bytes())
        else:
            mod = llvm.parse_assembly(source.read_text(encoding="utf-8", errors="replace"))
        mod.verify()
    except RuntimeError as exc:
        raise ToolError("llvmlite", [str(source)], None, str(exc).encode("utf-8"), "failed to parse IR") from exc
    return mod


def _target_machine(triple: str, opt_level: int) -> llvm.TargetMachine:
    _init_llvm_targets()
    try:
        target = llvm.Target.from_triple(triple)
    except RuntimeError as exc:
        raise ConfigError(f"llvm has no target for {triple}: {exc}") from exc
    # small code model: the default (jitdefault) lands code in .ltext and
    # globals in .ldata/.lbss on newer llvm, which the linker script ignores
    return target.create_target_machine(opt=opt_level, reloc="static", codemodel="small")


def configure_for_target(mod: llvm.ModuleRef, triple: str, opt_level: int = 2) -> llvm.TargetMachine:
    tm = _target_machine(triple, opt_level)
    mod.triple = triple
    mod.data_layout = str(tm.target_data)
    return tm


def emit_object(source: Path, triple: str, out: Path, opt_level: int = 2) -> None:
    """In-process code generation: IR file -> relocatable object."""
    mod = parse_ir_module(source)
    tm = configure_for_target(mod, triple, opt_level)
    out.write_bytes(tm.emit_object(mod))


def write_linked_ll(source: Path, triple: str, out: Path) -> None:
    mod = parse_ir_module(source)
    configure_for_target(mod, triple)
    out.write_text(str(mod), encoding="utf-8")


def _codegen(source: Path, arch: str, obj: Path, tools: Toolchain) -> None:
    cfg = tools.config
    triple = cfg.triple_for(arch)
    if cfg.codegen == "llvmlite":
        log.debug("+ llvmlite emit_object %s (%s)", source, triple)
        emit_object(source, triple, obj, cfg.opt_level)
        return
    tools.run([
        cfg.llc,
        f"-mtriple={triple}",
        f"-O{cfg.opt_level}",
        "-filetype=obj",
        str(source),
        "-o",
        str(obj),
    ])


def produce_binary(source: Path, arch: str, script: Path, tools: Toolchain) -> Path:
    cfg = tools.config
    triple = cfg.triple_for(arch)
    binary = output_path_for(source, arch)

    if cfg.output_linked_ll:
        write_linked_ll(source, triple, binary.with_suffix(".ll"))

    with scratch_file(".o") as obj:
        _codegen(source, arch, obj, tools)
        tools.run([cfg.ld, f"-T{script}", str(obj), "-o", str(binary)])

    return binary


# -----------------------------
# ELF reading
# -----------------------------

@contextlib.contextmanager
def open_elf(path: Path) -> Iterator[ELFFile]:
    with path.open("rb") as fh:
        try:
            ef = ELFFile(fh)
        except ELFError as exc:
            raise BinaryFormatError(path, str(exc)) from exc
        try:
            yield ef
        except ELFError as exc:
            raise BinaryFormatError(path, str(exc)) from exc


def _symtab(ef: ELFFile, path: Path) -> SymbolTableSection:
    for sec in ef.iter_sections():
        if isinstance(sec, SymbolTableSection) and sec["sh_type"] == "SHT_SYMTAB":
            return sec
    raise MissingSectionError(path, ".symtab")


def _is_global_function(sym) -> bool:
    info = sym["st_info"]
    return info["bind"] == "STB_GLOBAL" and info["type"] == "STT_FUNC"


def extract_global_functions(binary: Path) -> SymbolTable:
    """Global function symbols of `binary`, tagged C/Public, in symtab order."""
    with open_elf(binary) as ef:
        if ef.get_section_by_name(".text") is None:
            raise MissingSectionError(binary, ".text")
        return [
            SymbolTableEntry(sym.name, int(sym["st_value"]), ABI.C, Visibility.PUBLIC)
            for sym in _symtab(ef, binary).iter_symbols()
            if _is_global_function(sym)
        ]


def has_section(binary: Path, name: str) -> bool:
    with open_elf(binary) as ef:
        return ef.get_section_by_name(name) is not None


# -----------------------------
# Annotation pass
# -----------------------------

ANNOTATION_PASS = "AnnotationPass"

# the pass is C++ and leaves a NUL (or CR) behind each token
_TOKEN_TERMINATORS = "\x00\r"


def annotation_pass_cmd(cfg: BuildConfig) -> List[str]:
    plugin = cfg.pass_path / f"lib{ANNOTATION_PASS}.so"
    cmd = [cfg.opt, "-load", str(plugin), f"-{ANNOTATION_PASS}"]
    if cfg.pass_output == "stdout":
        cmd.append("-disable-output")
    return cmd


def run_annotation_pass(source: Path, tools: Toolchain) -> bytes:
    res = tools.run(annotation_pass_cmd(tools.config), stdin=source.read_bytes())
    return res.stderr if tools.config.pass_output == "stderr" else res.stdout


def _trim_token(token: str) -> str:
    token = token.strip(" \t")
    if token and token[-1] in _TOKEN_TERMINATORS:
        token = token[:-1]
    return token.strip(" \t")


def parse_annotations(data: bytes) -> SymbolTable:
    """Parse `name:visibility` records. Any bad record rejects the whole output."""
    table: SymbolTable = []
    seen = set()
    for line in data.decode("utf-8", errors="replace").split("\n"):
        if not line.strip(" \t\r\x00"):
            continue

        parts = line.split(":")
        if len(parts) != 2:
            raise AnnotationFormatError("expected name:visibility", line, data)

        name = parts[0].strip()
        if not name:
            raise AnnotationFormatError("empty symbol name", line, data)

        vis = VISIBILITY_TOKENS.get(_trim_token(parts[1]))
        if vis is None:
            raise AnnotationFormatError("unknown visibility", line, data)

        if name in seen:
            raise AnnotationFormatError("symbol listed twice", line, data)
        seen.add(name)

        table.append(SymbolTableEntry(name=name, abi=ABI.SOS, visibility=vis))
    return table


def resolve_visibility(source: Path, tools: Toolchain) -> SymbolTable:
    return parse_annotations(run_annotation_pass(source, tools))


def merge_symbol_tables(addresses: SymbolTable, classified: SymbolTable) -> SymbolTable:
    """
    Join the binary's global functions with the pass classification by name.

    Addresses come from the linked binary, visibility from the pass; every
    merged entry is SOS. Order follows the binary's symbol table.
    """
    by_name = {e.name: e for e in classified}
    merged: SymbolTable = []
    for sym in addresses:
        info = by_name.pop(sym.name, None)
        if info is None:
            log.warning("%s has no visibility annotation, recording it as private", sym.name)
            merged.append(replace(sym, abi=ABI.SOS, visibility=Visibility.PRIVATE))
        else:
            merged.append(replace(info, offset=sym.offset, abi=ABI.SOS))

    for name in by_name:
        log.debug("annotated %s is not a global function in the binary; dropped", name)

    return merged


# -----------------------------
# Manifest injection
# -----------------------------

MANIFEST_SECTION = ".manifest"


def inject_manifest(binary: Path, manifest: Manifest, tools: Toolchain) -> None:
    payload = manifest.serialize()
    action = "--update-section" if has_section(binary, MANIFEST_SECTION) else "--add-section"

    with scratch_file(".json") as man:
        man.write_bytes(payload)
        tools.run([
            tools.config.objcopy,
            action,
            f"{MANIFEST_SECTION}={man}",
            str(binary),
            str(binary),
        ])


def read_manifest(binary: Path) -> Optional[Manifest]:
    with open_elf(binary) as ef:
        sec = ef.get_section_by_name(MANIFEST_SECTION)
        if sec is None:
            return None
        data = sec.data()
    return Manifest.deserialize(data)


# -----------------------------
# Statelessness check
# -----------------------------

# .ldata/.lbss are the large-code-model spellings of the same storage
WRITABLE_PREFIXES = (".data", ".bss", ".ldata", ".lbss")


def check_stateless(binary: Path) -> None:
    with open_elf(binary) as ef:
        offending: Optional[Tuple[int, str]] = None
        for idx, sec in enumerate(ef.iter_sections()):
            if sec.name.startswith(WRITABLE_PREFIXES):
                offending = (idx, sec.name)
                break

        if offending is None:
            return

        idx, sec_name = offending
        symbols = [
            sym.name
            for sym in _symtab(ef, binary).iter_symbols()
            if sym["st_shndx"] == idx and sym.name
        ]
    raise StatefulBinaryError(binary, sec_name, symbols)


# -----------------------------
# Driver
# -----------------------------

def list_std_lib(std_path: Path) -> List[Path]:
    if not std_path.is_dir():
        raise ConfigError(f"standard library directory {std_path} does not exist")
    return sorted(p for p in std_path.iterdir() if p.suffix == ".ll")


def compile_module(source: Path, script: Path, tools: Toolchain) -> List[Path]:
    log.info("Processing %s", source)
    classified = resolve_visibility(source, tools)
    module_name = module_name_for(source)

    outputs: List[Path] = []
    for arch in tools.config.archs:
        binary = produce_binary(source, arch, script, tools)
        table = merge_symbol_tables(extract_global_functions(binary), classified)
        inject_manifest(binary, build_manifest(module_name, table), tools)
        check_stateless(binary)
        log.info("%s: %d symbols", binary, len(table))
        outputs.append(binary)
    return outputs


def manifest_only(binary: Path, tools: Toolchain) -> Path:
    log.info("Injecting manifest into %s", binary)
    manifest = build_manifest(module_name_for(binary), extract_global_functions(binary))
    inject_manifest(binary, manifest, tools)
    return binary


def run_build(inputs: Sequence[Path], config: BuildConfig, runner: ToolRunner = run_tool) -> List[Path]:
    """Process every input; returns the binaries written or updated."""
    tools = Toolchain(config, runner)
    outputs: List[Path] = []
    errors: List[Exception] = []

    def attempt(fn: Callable[[], Any]) -> None:
        try:
            res = fn()
        except (Stage2Error, OSError) as exc:
            if not config.keep_going:
                raise
            log.error("%s", exc)
            errors.append(exc)
            return
        if isinstance(res, list):
            outputs.extend(res)
        else:
            outputs.append(res)

    if config.just_manifest:
        for path in inputs:
            attempt(lambda path=path: manifest_only(path, tools))
    else:
        std_lls = list_std_lib(config.std_path)
        log.debug("standard library: %d modules in %s", len(std_lls), config.std_path)

        with materialized_linker_script(config.merge_data) as script:
            for path in inputs:
                if path.suffix not in IR_SUFFIXES:
                    log.info("Ignoring %s, not an llvm-ir file (!.bc && !.ll)", path)
                    continue
                attempt(lambda path=path: compile_module(path, script, tools))

    if errors:
        raise errors[0]
    return outputs


# -----------------------------
# CLI
# -----------------------------

def die(msg: str) -> None:
    log.error("%s", msg)
    sys.exit(2)


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="symbind",
        description="LLVM IR -> fixed-address ELF module with embedded .manifest",
    )
    ap.add_argument("inputs", nargs="*", help=".ll/.bc modules (or linked binaries with --just-manifest)")
    ap.add_argument("-m", "--just-manifest", action="store_true", help="Skip compilation; only extract and inject a manifest")
    ap.add_argument("-l", "--output-linked-ll", action="store_true", help="Also write <stem>-<arch>.ll: the module retargeted to the arch (triple and data layout set)")
    ap.add_argument("-d", "--merge-data", action="store_true", help="Merge .data into .rodata in the linker script")
    ap.add_argument("-s", "--std-path", default="stdlib", help="Directory holding standard-library .ll modules")
    ap.add_argument("-p", "--pass-path", default="stage2/passes", help="Directory holding libAnnotationPass.so")
    ap.add_argument("--arch", action="append", default=[], help=f"Target architecture, repeatable ({', '.join(ARCH_TRIPLES)}). Default x86_64.")
    ap.add_argument("--codegen", choices=("llc", "llvmlite"), default="llc", help="Code generator backend")
    ap.add_argument("--opt", type=int, default=2, help="Code generation optimization level (0-3). Default 2.")
    ap.add_argument("--pass-output", choices=("stdout", "stderr"), default="stdout", help="Stream the annotation pass writes records to")
    ap.add_argument("--timeout", type=float, default=None, help="Kill external tools after this many seconds")
    ap.add_argument("--keep-going", action="store_true", help="Attempt every input; report the first failure at the end")
    ap.add_argument("--print-manifest", action="store_true", help="Print the embedded manifest of each input binary and exit")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def config_from_args(args: argparse.Namespace) -> BuildConfig:
    return BuildConfig(
        archs=tuple(args.arch) or ("x86_64",),
        merge_data=args.merge_data,
        just_manifest=args.just_manifest,
        output_linked_ll=args.output_linked_ll,
        std_path=Path(args.std_path),
        pass_path=Path(args.pass_path),
        codegen=args.codegen,
        opt_level=max(0, min(3, int(args.opt))),
        pass_output=args.pass_output,
        tool_timeout=args.timeout,
        keep_going=args.keep_going,
    )


def print_manifests(paths: Sequence[Path]) -> None:
    for path in paths:
        manifest = read_manifest(path)
        if manifest is None:
            raise MissingSectionError(path, MANIFEST_SECTION)
        print(json.dumps({"File": str(path), **manifest.to_json()}, indent=2))


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    inputs = [Path(p) for p in args.inputs]
    try:
        if args.print_manifest:
            print_manifests(inputs)
            return 0
        config = config_from_args(args)
        for arch in config.archs:
            config.triple_for(arch)
        run_build(inputs, config)
    except Stage2Error as exc:
        die(str(exc))
    except OSError as exc:
        die(f"{exc.filename or ''}: {exc.strerror or exc}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

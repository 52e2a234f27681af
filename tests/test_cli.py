from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import ADD_LL, require_objcopy
from symbind import (
    BuildConfig,
    Manifest,
    Toolchain,
    build_arg_parser,
    config_from_args,
    inject_manifest,
    linker_script,
    main,
    materialized_linker_script,
)


def test_defaults_match_original_flags():
    args = build_arg_parser().parse_args(["a.ll"])
    cfg = config_from_args(args)
    assert cfg.archs == ("x86_64",)
    assert cfg.std_path == Path("stdlib")
    assert cfg.pass_path == Path("stage2/passes")
    assert not (cfg.merge_data or cfg.just_manifest or cfg.output_linked_ll)
    assert cfg.codegen == "llc"


def test_short_flags_and_clamped_opt():
    args = build_arg_parser().parse_args(
        ["-m", "-d", "-l", "-s", "std", "-p", "passes", "--arch", "arm", "--arch", "x86_64", "--opt", "9", "x.o"]
    )
    cfg = config_from_args(args)
    assert cfg.just_manifest and cfg.merge_data and cfg.output_linked_ll
    assert cfg.archs == ("arm", "x86_64")
    assert cfg.opt_level == 3
    assert cfg.triple_for("arm") == "arm-none-gnueabihf"


def test_linker_scripts_pin_the_layout():
    for merge in (False, True):
        script = linker_script(merge)
        assert script.startswith("call = 0x700000;")
        assert ". = 0x800000;" in script
        assert ".text : {*(.text)}" in script
    assert ".data .data.*" in linker_script(True)
    assert ".data" not in linker_script(False)


def test_linker_script_file_is_removed():
    with materialized_linker_script(True) as path:
        assert path.read_text(encoding="utf-8") == linker_script(True)
    assert not path.exists()


def test_pipeline_error_exits_2(tmp_path, caplog):
    junk = tmp_path / "junk.o"
    junk.write_bytes(b"nope")
    with pytest.raises(SystemExit) as ei:
        main(["--just-manifest", str(junk)])
    assert ei.value.code == 2
    assert "junk.o" in caplog.text


def test_missing_input_exits_2(tmp_path):
    with pytest.raises(SystemExit) as ei:
        main(["--just-manifest", str(tmp_path / "absent.o")])
    assert ei.value.code == 2


def test_unknown_arch_exits_2(tmp_path):
    with pytest.raises(SystemExit) as ei:
        main(["--arch", "mips", "-s", str(tmp_path), "x.ll"])
    assert ei.value.code == 2


def test_print_manifest_needs_the_section(emit_elf, caplog):
    binary = emit_elf("add", ADD_LL)
    with pytest.raises(SystemExit) as ei:
        main(["--print-manifest", str(binary)])
    assert ei.value.code == 2
    assert ".manifest section is missing" in caplog.text


def test_print_manifest(emit_elf, capsys):
    binary = emit_elf("add", ADD_LL)
    inject_manifest(binary, Manifest("add"), Toolchain(BuildConfig(objcopy=require_objcopy())))

    assert main(["--print-manifest", str(binary)]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out == {"File": str(binary), "ModuleName": "add", "SymbolTable": []}

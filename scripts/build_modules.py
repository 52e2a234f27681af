import argparse
import re
import shutil
import subprocess
import sys
import zipfile
from pathlib import Path

IR_SUFFIXES = (".ll", ".bc")
# zip entries carry a fixed timestamp so a rebuilt bundle is byte-identical
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


def fail(msg: str) -> None:
    print(f"build_modules: {msg}", file=sys.stderr)
    sys.exit(2)


def run_symbind(cmd: list[str]) -> None:
    """Run one symbind invocation; its stderr is only shown when it fails."""
    print("+ " + " ".join(cmd))
    proc = subprocess.run(cmd, capture_output=True, text=True)
    if proc.returncode != 0:
        sys.stderr.write(proc.stderr)
        fail(f"symbind exited with status {proc.returncode}")


def clean_stage(build_root: Path) -> bool:
    """Drop the staging tree; returns whether anything was there."""
    if not build_root.exists():
        return False
    print(f"[clean] {build_root}")
    shutil.rmtree(build_root)
    return True


def pack_bundle(bundle_root: Path, dst_zip: Path) -> list[str]:
    """
    Zip every binary under bundle_root, keyed as modules/<arch>/<stem>.o.

    Returns the archive names in the order they were written.
    """
    if not bundle_root.is_dir():
        fail(f"nothing to pack: {bundle_root} is not a directory")
    dst_zip.parent.mkdir(parents=True, exist_ok=True)

    names: list[str] = []
    with zipfile.ZipFile(dst_zip, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for p in sorted(bundle_root.rglob("*.o")):
            name = p.relative_to(bundle_root.parent).as_posix()
            info = zipfile.ZipInfo(name, date_time=ZIP_EPOCH)
            info.compress_type = zipfile.ZIP_DEFLATED
            z.writestr(info, p.read_bytes())
            names.append(name)
    return names


def find_modules(src_dir: Path, only: str = "") -> list[Path]:
    if not src_dir.is_dir():
        fail(f"Module source dir not found: {src_dir}")
    mods = sorted(p for p in src_dir.iterdir() if p.is_file() and p.suffix in IR_SUFFIXES)
    if only:
        needle = only.lower()
        mods = [p for p in mods if needle in p.stem.lower()]
    stems = [p.stem for p in mods]
    dupes = sorted({s for s in stems if stems.count(s) > 1})
    if dupes:
        # a.ll and a.bc would both write a-<arch>.o
        fail(f"Multiple IR files for the same module in {src_dir}: {', '.join(dupes)}")
    return mods

def expected_outputs(staged: Path, archs: list[str]) -> list[Path]:
    return [staged.with_name(f"{staged.stem}-{a}.o") for a in archs]


def find_symbind(repo_root: Path) -> Path:
    p = repo_root / "symbind.py"
    if not p.exists():
        fail(f"symbind.py missing at repo root: {p}")
    return p


def build_module(repo_root: Path, stage_dir: Path, src: Path, args: argparse.Namespace) -> list[Path]:
    """
    Copies src into stage_dir and runs symbind on the copy, so outputs
    (<stem>-<arch>.o) land in the build tree instead of the source tree.
    Returns the produced binaries.
    """
    stage_dir.mkdir(parents=True, exist_ok=True)
    staged = stage_dir / src.name
    shutil.copy2(src, staged)

    comp = find_symbind(repo_root)
    cmd = [
        sys.executable, str(comp),
        str(staged),
        "--std-path", str(args.src),
        "--pass-path", str(args.pass_path),
        "--codegen", args.codegen,
    ]
    for a in args.arch:
        cmd += ["--arch", a]
    if args.merge_data:
        cmd += ["--merge-data"]

    run_symbind(cmd)

    outs = expected_outputs(staged, args.arch)
    for o in outs:
        if not o.exists():
            fail(f"symbind did not produce {o}")
    return outs


def safe_tag(tag: str) -> str:
    # v0.2.0 -> v0.2.0, "release 1/2" -> release_1_2
    return re.sub(r"[^A-Za-z0-9._-]+", "_", tag.strip()) or "0.0.0"

def main() -> None:
    ap = argparse.ArgumentParser(description="Build every IR module of a directory into manifest-bearing binaries")
    ap.add_argument("--src", default="stdlib", help="Directory of .ll/.bc modules")
    ap.add_argument("--tag", default="0.0.0")
    ap.add_argument("--out", default="dist")
    ap.add_argument("--arch", action="append", default=[], help="Target architecture, repeatable. Default x86_64.")
    ap.add_argument("--pass-path", default="stage2/passes")
    ap.add_argument("--codegen", choices=("llc", "llvmlite"), default="llc")
    ap.add_argument("--merge-data", action="store_true")
    ap.add_argument("--only", default="", help="Build only modules whose name contains this. Case-insensitive.")
    ap.add_argument("--clean", action="store_true", help="Delete build/modules before building")
    ap.add_argument("--clean-only", action="store_true", help="Delete build/modules and exit")

    args = ap.parse_args()
    if not args.arch:
        args.arch = ["x86_64"]

    repo_root = Path(__file__).resolve().parents[1]
    args.src = Path(args.src).resolve()
    args.pass_path = Path(args.pass_path).resolve()

    build_root = repo_root / "build" / "modules"
    if args.clean or args.clean_only:
        if not clean_stage(build_root):
            print(f"[clean] {build_root} already absent")
        if args.clean_only:
            return

    tag = safe_tag(args.tag)
    out_dir = repo_root / args.out / tag
    bundle_root = out_dir / "modules"

    mods = find_modules(args.src, args.only)
    if not mods:
        fail(f"No .ll/.bc modules in {args.src}")

    for src in mods:
        outs = build_module(repo_root, build_root / src.stem, src, args)
        for arch, o in zip(args.arch, outs):
            dst = bundle_root / arch
            dst.mkdir(parents=True, exist_ok=True)
            shutil.copy2(o, dst / f"{src.stem}.o")

    zip_name = f"symbind-modules-{tag}.zip"
    packed = pack_bundle(bundle_root, out_dir / zip_name)
    print(f"Packed {len(packed)} binaries into {zip_name}")

    print(f"Done. Output: {out_dir}")

if __name__ == "__main__":
    main()

"""CLI entry point: argparse dispatcher for the build and dev subcommands."""
from __future__ import annotations

import argparse
import importlib
import json
import logging
import sys
import traceback

from modbuild.logger import CompileError, ModbuildError, set_level


# ---------------------------------------------------------------------------
# Subcommand -> (module, handler), imported on dispatch
# ---------------------------------------------------------------------------
COMMANDS = {
    "build": ("cli.commands.build", "cmd_build"),
    "dev":   ("cli.commands.dev",   "cmd_dev"),
}


# ---------------------------------------------------------------------------
# Shared argparse helpers
# ---------------------------------------------------------------------------
def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--format", choices=["esm", "cjs"], default="esm",
                   help="Module linkage of emitted output")
    p.add_argument("--tsconfig", default="tsconfig.json", help="tsconfig to use")
    p.add_argument("--external", nargs="+", help="Packages to keep external when bundling")


# ---------------------------------------------------------------------------
# Parser builder
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    from cli._version import __version__

    parser = argparse.ArgumentParser(
        prog="modbuild",
        description="Compile a package's src/ tree into a publishable dist/ tree",
    )
    parser.add_argument("--debug", action="store_true", help="Show stack traces on error")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    # build
    p = sub.add_parser("build", help="Build src/ to dist/")
    p.add_argument("input", nargs="?", help="Input file pattern (default: src/**/*)")
    _add_common_args(p)
    p.add_argument("-d", "--dev", action="store_true", help="Development build (implies --runtime-only)")
    p.add_argument("-b", "--bundle", action="store_true", help="Bundle each entry point")
    p.add_argument("--standalone", action="store_true", help="Standalone bundles, no chunks or imports (implies --bundle)")
    p.add_argument("--binary", action="store_true", help="Package executables after building")
    p.add_argument("-r", "--runtime-only", action="store_true", help="Skip styles, binaries and declarations")
    p.add_argument("--js-only", action="store_true", help="Skip styles and binaries")
    p.add_argument("--no-write", action="store_true", help="Print compiled stdin source instead of writing")
    p.add_argument("--no-clear", action="store_true", help="Keep the existing output tree")
    p.add_argument("--stdin", nargs="?", const="-", help="Build source from stdin (or the given text)")
    p.add_argument("--stdin-file", help="File location to emulate for stdin source")
    p.add_argument("--target", default="esnext", help="Engine target")
    p.add_argument("--styles", default="src/components/index.css", help="Global stylesheet entry")

    # dev
    p = sub.add_parser("dev", help="Build, then rebuild on file changes (daemon)")
    p.add_argument("path", nargs="?", default=".", help="Project root")
    _add_common_args(p)

    return parser


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------
def _error_payload(exc: BaseException) -> dict:
    payload = {"ok": False, "type": type(exc).__name__}
    if isinstance(exc, CompileError):
        payload["error"] = Exception.__str__(exc)
        payload["diagnostic"] = exc.diagnostic.strip()
    else:
        payload["error"] = str(exc)
    return payload


def main() -> None:
    args = build_parser().parse_args(sys.argv[1:])
    if args.debug:
        set_level(logging.DEBUG)

    mod_path, fn_name = COMMANDS[args.command]
    try:
        fn = getattr(importlib.import_module(mod_path), fn_name)
        fn(args)
    except KeyboardInterrupt:
        sys.exit(130)
    except ModbuildError as exc:
        json.dump(_error_payload(exc), sys.stdout, default=str)
        sys.stdout.write("\n")
        if args.debug:
            traceback.print_exc(file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        # unexpected: always show where it came from
        json.dump(_error_payload(exc), sys.stdout, default=str)
        sys.stdout.write("\n")
        traceback.print_exc(file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Build command: compile src/ into dist/ once."""
from __future__ import annotations

import argparse
import sys

from cli.core import output_json, resolve_layout, run_async
from modbuild.build import BuildRequest, build


def _literal_source(args: argparse.Namespace) -> str | None:
    stdin = getattr(args, "stdin", None)
    if stdin is None:
        return None
    if stdin == "-":
        return sys.stdin.read()
    return stdin


def request_from_args(args: argparse.Namespace) -> BuildRequest:
    """Translate parsed CLI flags into a normalized BuildRequest."""
    kwargs = {
        "literal_source": _literal_source(args),
        "stdin_file": getattr(args, "stdin_file", None),
        "target": args.target,
        "tsconfig": args.tsconfig,
        "styles": args.styles,
        "bundle": args.bundle,
        "standalone": args.standalone,
        "binary": args.binary,
        "runtime_only": args.runtime_only,
        "js_only": args.js_only,
        "no_write": args.no_write,
        "clear": not args.no_clear,
        "external": args.external or (),
    }
    if args.input:
        kwargs["input"] = args.input
    return BuildRequest.create(dev=args.dev, format=args.format, **kwargs)


def cmd_build(args: argparse.Namespace) -> None:
    """Build the package in the current directory."""
    layout = resolve_layout()
    request = request_from_args(args)
    result = run_async(build(request, layout=layout))
    if isinstance(result, str):
        sys.stdout.write(result)
        return
    if result is None:
        return
    output_json(result.to_dict())
    if not result.ok:
        sys.exit(1)

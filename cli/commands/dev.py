"""Dev command: build once, then rebuild changed files (daemon mode)."""
from __future__ import annotations

import argparse
import sys

from cli.core import resolve_layout, run_async
from modbuild.build import BuildRequest
from modbuild.dev_watch import DevWatcher


def cmd_dev(args: argparse.Namespace) -> None:
    """Watch src/ and rebuild into dist/ on change."""
    layout = resolve_layout(getattr(args, "path", None))
    request = BuildRequest.create(
        dev=True,
        format=args.format,
        tsconfig=args.tsconfig,
        external=args.external or (),
    )
    watcher = DevWatcher(layout, request)
    print(f"Watching {layout.src_dir} → {layout.out_dir}", file=sys.stderr)
    try:
        run_async(watcher.run())
    except KeyboardInterrupt:
        print("\nStopping watcher...", file=sys.stderr)

"""Typed build options, normalized once before any stage reads them."""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from modbuild.logger import ConfigurationError

from .config import (
    DEFAULT_INPUT,
    DEFAULT_STYLES,
    DEFAULT_TARGET,
    DEFAULT_TSCONFIG,
)


class OutputFormat(str, Enum):
    ESM = "esm"  # async-linked
    CJS = "cjs"  # sync-linked

    @property
    def package_type(self) -> str:
        return "module" if self is OutputFormat.ESM else "commonjs"


class BuildMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


_TARGET_RE = re.compile(
    r"^(esnext|es5|es6|es20\d\d|node\d+(\.\d+)*|chrome\d+|firefox\d+|safari\d+(\.\d+)*|edge\d+|deno\d+(\.\d+)*)$"
)


@dataclass(frozen=True)
class BuildRequest:
    input: str = DEFAULT_INPUT
    literal_source: Optional[str] = None
    stdin_file: Optional[str] = None
    format: OutputFormat = OutputFormat.ESM
    mode: BuildMode = BuildMode.PRODUCTION
    target: str = DEFAULT_TARGET
    tsconfig: str = DEFAULT_TSCONFIG
    styles: str = DEFAULT_STYLES
    bundle: bool = False
    standalone: bool = False
    binary: bool = False
    runtime_only: bool = False
    js_only: bool = False
    no_write: bool = False
    clear: bool = True
    external: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, *, dev: bool = False, format: str | OutputFormat = OutputFormat.ESM, **kwargs) -> "BuildRequest":
        """Build a request from loose CLI-style arguments."""
        try:
            fmt = OutputFormat(format)
        except ValueError:
            raise ConfigurationError(
                f"Unknown output format {format!r}; expected one of "
                + ", ".join(f.value for f in OutputFormat)
            ) from None
        if "external" in kwargs and kwargs["external"] is not None:
            kwargs["external"] = tuple(kwargs["external"])
        else:
            kwargs.pop("external", None)
        mode = BuildMode.DEVELOPMENT if dev else BuildMode.PRODUCTION
        return cls(format=fmt, mode=mode, **kwargs).normalized()

    @property
    def development(self) -> bool:
        return self.mode is BuildMode.DEVELOPMENT

    @property
    def is_literal(self) -> bool:
        return self.literal_source is not None

    @property
    def is_single_path(self) -> bool:
        return not self.is_literal and Path(self.input).is_absolute()

    def normalized(self) -> "BuildRequest":
        """Resolve interdependent defaults and validate option combinations.

        Development implies runtime_only, standalone implies bundle.
        """
        if self.is_literal and not self.stdin_file:
            raise ConfigurationError(
                "--stdin-file must be specified to emulate a file location when using stdin."
            )
        if self.no_write and not self.is_literal:
            raise ConfigurationError("--no-write is only supported for literal (stdin) input.")
        if not _TARGET_RE.match(self.target):
            raise ConfigurationError(f"Unsupported target {self.target!r}")
        if self.format is OutputFormat.ESM and self.target == "es5":
            # import/export syntax does not exist in ES5
            raise ConfigurationError("esm output cannot target es5; use --format cjs")

        runtime_only = self.runtime_only or self.development
        bundle = self.bundle or self.standalone
        if runtime_only == self.runtime_only and bundle == self.bundle:
            return self
        return replace(self, runtime_only=runtime_only, bundle=bundle)

    def for_path(self, path: str | Path) -> "BuildRequest":
        """Single-path variant used for incremental rebuilds."""
        return replace(self, input=str(Path(path).resolve()), literal_source=None, no_write=False)

    @property
    def splitting(self) -> bool:
        return (
            self.bundle
            and not self.standalone
            and not self.is_literal
            and self.format is OutputFormat.ESM
        )

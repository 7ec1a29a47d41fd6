"""Build pipeline for compiling a package's src/ tree into dist/.

Modules:
    config: constants, project layout and external tool lookup
    request: typed build options
    classify: source discovery and dialect classification
    engine: transform engine wrapper (esbuild)
    normalize: relative specifier rewriting in emitted output
    output: output-tree lifecycle and metadata patching
    auxiliary: styles, binaries and declaration stages
    progress: stage reporting
    pipeline: the build orchestrator
"""

from .config import ProjectLayout
from .pipeline import build, run_build
from .progress import BuildReport, BuildStage
from .request import BuildMode, BuildRequest, OutputFormat

__all__ = [
    "BuildMode",
    "BuildReport",
    "BuildRequest",
    "BuildStage",
    "OutputFormat",
    "ProjectLayout",
    "build",
    "run_build",
]

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_repo_root_on_path() -> None:
    """Ensure the repository root (parent of this package) is on ``sys.path``.

    If this module is executed as a script (``python math_recall/__main__.py``),
    the package may not be discoverable by Python. This helper inserts the
    parent directory of the package into ``sys.path`` so that imports resolve
    correctly.
    """
    pkg_dir = Path(__file__).resolve().parent
    repo_root_str = str(pkg_dir.parent)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


try:
    # Works when executed as a module: python -m math_recall
    from .app import run  # type: ignore[attr-defined]
    from .logging_conf import setup_logging  # type: ignore[attr-defined]
except ImportError:
    _ensure_repo_root_on_path()
    from math_recall.app import run  # type: ignore[attr-defined]
    from math_recall.logging_conf import setup_logging  # type: ignore[attr-defined]


def main() -> int:
    """Entry point for running the quiz from the command line."""
    setup_logging()
    return run()


if __name__ == "__main__":
    raise SystemExit(main())

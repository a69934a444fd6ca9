"""Command that validates every workflow file found under a directory."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

from .parser import SUPPORTED_EXTENSIONS, from_file


def _walk(path: Path) -> Iterator[Path]:
    """Yield every non-directory entry under *path* in lexical order."""
    if path.is_dir() and not path.is_symlink():
        for child in sorted(path.iterdir(), key=lambda p: p.name):
            yield from _walk(child)
    else:
        yield path


def main(argv: list[str] | None = None) -> int:
    """Validate the workflows in a directory and return the exit status."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("Usage: flowspec <examples-directory>")
        return 1

    base_dir = args[0]
    failures = 0
    try:
        Path(base_dir).lstat()
        for path in _walk(Path(base_dir)):
            if path.suffix not in SUPPORTED_EXTENSIONS:
                continue
            print(f"Validating: {path}")
            try:
                from_file(str(path))
            except (OSError, ValueError) as exc:
                print(f"Validation failed for {path}: {exc}")
                failures += 1
            else:
                print(f"Validation succeeded for {path}")
    except OSError as exc:
        print(f"Error walking the path {base_dir}: {exc}")
        return 1

    if failures:
        print(f"Validation failed for {failures} file(s).")
        return 1

    print("All workflows validated successfully.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
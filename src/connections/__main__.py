"""Entry point for ``python -m connections``."""

from __future__ import annotations

import sys


def main() -> None:
    """Dispatch CLI commands."""
    from connections.cli import dispatch
    dispatch(sys.argv[1:])


if __name__ == "__main__":
    main()

from __future__ import annotations

from .app import run


def main() -> int:
    """Open the session trainer window."""
    return run()


if __name__ == "__main__":
    raise SystemExit(main())

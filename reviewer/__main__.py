"""Entry point for `python -m reviewer`."""

from __future__ import annotations

from reviewer import cli


def main(argv: list[str] | None = None) -> int:
    return cli.main(argv)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

"""Module entry point: python -m prayer_reminder ..."""

from __future__ import annotations

from prayer_reminder.cli import main


if __name__ == "__main__":
    raise SystemExit(main())

"""Entry point for ``python -m triggerexpr``."""

from triggerexpr.main import main

if __name__ == "__main__":
    raise SystemExit(main())

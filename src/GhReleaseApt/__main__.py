"""Allow ``python -m GhReleaseApt``."""

from .cli import run

if __name__ == "__main__":  # pragma: no cover - exercised via CLI
    run()

"""Allow running as ``python -m pomofocus``."""

from pomofocus.cli.main import app

if __name__ == "__main__":
    app()

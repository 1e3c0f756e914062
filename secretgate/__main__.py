"""Allow ``python -m secretgate``."""

from secretgate.cli import cli

if __name__ == "__main__":
    cli()

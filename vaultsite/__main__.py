"""Main entry point for the vaultsite CLI."""

from vaultsite.cli import cli


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()

"""CLI entry point.

Usage:
    python -m gatheryourdeals <command> [OPTIONS]

Commands:
    init                  Create the first admin account
    serve                 Run the HTTP server
    admin reset-password  Set a new password for a user
"""

from gatheryourdeals.cli import cli


def main() -> None:
    """Entry point for ``python -m gatheryourdeals``."""
    cli()


if __name__ == "__main__":
    main()

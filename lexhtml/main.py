"""
The main entry point for the Lexical to HTML converter.
"""
import sys
import logging


def main():
    """Runs the command-line interface, exits with status 1 on a critical error."""
    log = logging.getLogger("lexhtml")

    try:
        from .cli import run_cli
        run_cli()
    except Exception:
        log.exception("A critical error occurred while running the CLI.")
        sys.exit(1)


if __name__ == '__main__':
    main()

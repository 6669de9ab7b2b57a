"""
carbide-send - A command-line tool for sending G-code files to Carbide Motion
"""

__version__ = "0.1.0"

from carbide_send.main import main

# This function is a direct entry point for CLI use
def cli_main():
    """
    Entry point for the CLI command.
    This function is referenced in pyproject.toml
    """
    import sys
    sys.exit(main())

"""
Launcher for running the CLI from a source checkout:

    python main.py domains list
"""

import sys

from regru_cli.cli import main


if __name__ == "__main__":
    sys.exit(main())

"""Main entry point for running pywebget as a module.

Usage:
    python -m pywebget fetch <url>
    python -m pywebget --help
"""

from pywebget.cli import main

if __name__ == '__main__':
    main()

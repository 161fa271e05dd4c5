"""
Entry point for running contact_ops as a module.

Usage:
    python -m contact_ops --help
    python -m contact_ops auth
    python -m contact_ops group add-members Favorites people/c1 people/c2
"""

from contact_ops.cli import cli

if __name__ == "__main__":
    cli()

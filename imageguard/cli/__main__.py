"""
Allow running the CLI as a module: python -m imageguard.cli
"""
from imageguard.cli.cli import app

if __name__ == "__main__":
    app()

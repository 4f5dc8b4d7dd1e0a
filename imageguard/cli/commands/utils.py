"""
Shared helpers for CLI commands.
"""
import typer


def confirm_action(message: str, default: bool = False) -> bool:
    """Ask the operator for a yes/no confirmation."""
    return typer.confirm(message, default=default)


def format_bytes(bytes_size: int) -> str:
    """Format bytes into human-readable string."""
    size = float(bytes_size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} PB"

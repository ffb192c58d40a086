"""git-status-dash — find git repositories and show whether they are in sync."""

__version__ = "0.3.0"

"""Static HTML mirrors of git repositories: logs, trees, diffs, refs and feeds."""

__version__ = "0.1.0"

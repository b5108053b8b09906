"""Issue triage - rule-driven labels and comments for GitHub issues and pull requests."""

__version__ = "0.1.0"

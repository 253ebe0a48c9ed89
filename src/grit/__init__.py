"""grit: terminal dashboard for pull requests, issues and CI across code forges."""

__version__ = "0.1.0"

__all__ = ["__version__"]

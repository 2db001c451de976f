"""pagesync — keep static site deployments in sync with git pages branches."""

__version__ = "0.1.0"

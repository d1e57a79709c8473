"""cdev: scaffolding and release command-line tool."""

__version__ = "0.4.0"

"""revforge: command-line front end for the revcore agent engine."""

__version__ = "0.3.0"

"""scanward — static analysis and dependency vulnerability scanning."""

__version__ = "0.1.0"

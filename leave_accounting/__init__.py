"""Leave Accounting: leave-request validation and balance accounting service."""

__version__ = "1.0.0"

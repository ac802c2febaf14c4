"""AWS Janitor - mark-and-sweep garbage collection for ephemeral AWS resources."""

__version__ = "0.1.0"

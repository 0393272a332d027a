"""HTTP/1.1 client building blocks: body readers and writers, a connection pool and JSON mapping."""

__version__ = "0.1.0"
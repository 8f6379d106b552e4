"""Event-driven building blocks: byte buffers, stream cutting, threads and loops, a descriptor event pool, shell commands and pseudo-terminals."""

__version__ = "0.1.0"
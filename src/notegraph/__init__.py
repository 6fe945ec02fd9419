"""notegraph: link graphs, bases queries and conversation detection for markdown vaults."""

__version__ = "0.3.0"

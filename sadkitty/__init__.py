"""sadkitty: incremental crawl-and-download for a creator's media feed."""

__version__ = "0.3.0"

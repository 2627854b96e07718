"""ddsearch: local hybrid (keyword + vector) search over document collections."""

__version__ = "1.0.0"

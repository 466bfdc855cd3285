"""feed_filter - keyword-filtering RSS/Atom reader."""

__version__ = "0.1.0"

"""capcat — curated catalog of installable agent capabilities."""

__version__ = "0.4.0"

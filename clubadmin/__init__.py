"""Administrative and maintenance tooling for club-management data."""

__version__ = "0.1.0"

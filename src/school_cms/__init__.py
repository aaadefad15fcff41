"""School content-management system: REST API and maintenance CLI."""

__version__ = "0.1.0"

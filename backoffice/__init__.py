"""Role-based commerce back-office: catalog, users, and orders over a REST API."""

__version__ = "1.0.0"

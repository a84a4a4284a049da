"""
Domain layer for the Perpustakaan digital library.

This package contains:
- Document models and enumerations
- MongoDB data store handle
- Upload file storage
- Catalog, moderation, rating and account services
- Sample data generator
"""

__version__ = "1.0.0"

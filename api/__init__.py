"""
FastAPI REST API for the Perpustakaan Dunia digital library.

This module provides:
- Registration, login and bearer token authentication
- Book catalog browsing, search, upload and download
- Comments, ratings, favorites and reading progress
- Admin moderation of uploaded books
- Per-IP rate limiting
"""

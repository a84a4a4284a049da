"""
HTTP routers of the library API, one module per resource.
"""

from api.routes import admin, auth, books, stats, users

routers = [auth.router, books.router, users.router, admin.router, stats.router]

"""
API Routers
Separate router modules for each domain.
"""

from app.routers import runner

__all__ = ["runner"]

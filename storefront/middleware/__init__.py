"""
Middleware приложения.
"""

from .maintenance import MaintenanceMiddleware

__all__ = ["MaintenanceMiddleware"]

"""
Optional router-level middleware.
"""

from .security import CORSMiddleware, SecurityHeadersMiddleware

__all__ = ["CORSMiddleware", "SecurityHeadersMiddleware"]

"""API routers."""
from . import ask, execute, system

__all__ = ["ask", "execute", "system"]

"""Route registrations for the passkey server."""

from .ceremonies import bp as ceremonies_bp
from .general import bp as general_bp

__all__ = ["ceremonies_bp", "general_bp"]

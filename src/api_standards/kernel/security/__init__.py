"""Kernel security – authenticated principal and its ambient context."""
from api_standards.kernel.security.principal import Principal
from api_standards.kernel.security.security_context import SecurityContext

__all__ = ["Principal", "SecurityContext"]

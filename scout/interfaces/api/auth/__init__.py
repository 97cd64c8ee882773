"""
Authentication - Shared-secret guard for administrative endpoints.
"""

from .deps import require_admin_token

__all__ = ["require_admin_token"]

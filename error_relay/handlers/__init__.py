"""Framework helpers"""

from .request_context import snapshot_request, authenticated_user

__all__ = ["snapshot_request", "authenticated_user"]

"""Team Foundation Server connector infrastructure."""

from .auth import TfsAuthMixin
from .client import Client
from .constants import API_VERSIONS

__all__ = ["TfsAuthMixin", "Client", "API_VERSIONS"]

"""Shared building blocks for Statboard domain modules."""

from statboard.modules.shared.base_service import BaseService
from statboard.modules.shared.exceptions import StatboardDomainException, is_client_error

__all__ = ["BaseService", "StatboardDomainException", "is_client_error"]

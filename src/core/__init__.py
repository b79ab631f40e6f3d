"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
- Request tracing middleware
- Optional customer authentication
- Anti-forgery tokens
- Common utilities
"""

from core.logging import configure_logging, get_logger
from core.auth import AuthUser, get_current_user
from core.tokens import TokenError, issue_token, verify_token
from core.utils import safe_get, split_csv

__all__ = [
    "configure_logging",
    "get_logger",
    "AuthUser",
    "get_current_user",
    "TokenError",
    "issue_token",
    "verify_token",
    "safe_get",
    "split_csv",
]

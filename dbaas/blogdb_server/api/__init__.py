"""
API module for BlogDB - HTTP transport.

This module provides the aiohttp application exposing queries, mutations,
relation reads and Server-Sent-Event subscriptions.
"""

from .http_server import create_http_app, run_http_server

__all__ = ["create_http_app", "run_http_server"]

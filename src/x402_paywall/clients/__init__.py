"""
Client module for x402 payment authorization.

Provides an httpx client that pays 402 responses with a signed transfer
authorization and replays the request.
"""

from .http_client import Http402Client

__all__ = ["Http402Client"]

"""
Authentication Module - Black Box Interface

Purpose: Issue and verify bearer tokens, hash passwords, validate external identities
Interface: BearerTokenCodec.issue(), decode_subject(), validate(); AuthFactory.build()
Hidden: Token encoding, signing keys, hashing algorithm

This module can be replaced with any other token scheme without affecting
the gate or the account flows, which only see these interfaces.
"""

from .codec import BearerTokenCodec
from .hasher import BcryptPasswordHasher

__all__ = ["BearerTokenCodec", "BcryptPasswordHasher"]

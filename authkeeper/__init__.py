"""
Authkeeper - Credential and Session Authentication Service

Registers users, authenticates them, issues bearer tokens and manages
single-use tokens for email verification and password reset.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- auth: Bearer token codec, password hashing, error taxonomy
- tokens: Ephemeral (single-use) token store and manager
- users: User model, repositories and account flows
- middleware: Per-request authentication gate
- notify: Outbound email notification
- storage: Data persistence abstraction
- api: REST API interface
"""

__version__ = "1.0.0"

"""
contact_ops - Permission-gated operations against an address-book store.

Provides a unit-of-work abstraction for fetching contacts and managing
contact groups, where every operation first passes an authorization check.
"""

__version__ = "0.1.0"

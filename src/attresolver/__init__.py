"""
attresolver: Attribute resolution for identity providers.

Resolves a graph of attribute definitions and data connectors into the
set of identity attributes released to a relying party.
"""

__version__ = "0.1.0"

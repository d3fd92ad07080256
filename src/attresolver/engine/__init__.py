"""Resolution engine: per-request context, activation conditions, the resolver and its loader.

Import from the submodules directly:
    from attresolver.engine.context import ResolutionContext
    from attresolver.engine.loader import build_resolver
    from attresolver.engine.resolver import AttributeResolver

(The plugin base classes import engine.conditions, so this package must not
import the resolver eagerly.)
"""

# shared/__init__.py
"""
Shared package - domain vocabulary, permission decorators and cache events.
Avoids importing services to prevent circular dependencies.
"""

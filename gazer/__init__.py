"""
gazer - watch files and run commands when they are updated.

- notify domain: glob patterns → watched directories → debounced update events
- dispatch domain: update events → matching command → supervised process
"""

__version__ = "0.1.0"

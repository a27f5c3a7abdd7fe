"""
Service layer for Cordage Tracker.

Each module exposes stateless functions; every function accepts an
optional ``session`` and only owns its transaction when none is given.
"""

"""State layer.

This package is the single source of truth for how parsed debug channel
events are gated, reconciled and retained.
"""

"""Ingestion layer.

Converts raw debug channel events into typed snapshot/update models.
Only the state layer is allowed to merge them.
"""

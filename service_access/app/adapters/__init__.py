"""
Adapters for services outside the access layer.
"""

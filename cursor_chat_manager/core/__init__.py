"""
Configuration, domain models, errors, and the storage layer.
"""

"""
Cache Domain Module

Domain layer for the read-through cache: value objects, entries, codec and contracts.
"""

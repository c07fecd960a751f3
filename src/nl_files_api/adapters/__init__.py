"""
Adapter layer for the files API.

Contains the storage abstraction and its filesystem, in-memory and S3
implementations. One of them is chosen per process from settings.
"""

"""
Adapter layer for the document gateway.

Contains the object store interface and its S3 implementation.
"""

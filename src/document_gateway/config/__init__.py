"""
Configuration management for the document gateway.

Contains the Pydantic settings read once at process start: backend credentials,
bucket, region, root folder prefix and transfer tuning.
"""

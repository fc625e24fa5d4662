"""Directory-action and streaming document gateway over S3-compatible object storage."""

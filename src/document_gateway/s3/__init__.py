"""S3 key mapping and client construction."""

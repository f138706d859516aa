"""S3 helpers: client creation, uploads and presigned downloads."""

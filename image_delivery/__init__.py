"""On-demand image transformation behind a CDN, backed by S3."""

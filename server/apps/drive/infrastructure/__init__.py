"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Object storage backend (S3/MinIO/R2) for file bytes
- Relational metadata store over the Django ORM
- Redis cache for records, listings and storage stats
- Account lookups for auth provider and quota
- Redis activity counters for downloads, previews and mutations

Business logic talks to these only through the protocols in contracts.
"""

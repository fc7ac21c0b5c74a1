"""
Blobstore - a configuration and convenience layer over S3 object storage.

This package contains the complete application:
- core: Framework-agnostic facade, codec and multipart uploader
- infrastructure: boto3 and in-memory storage backends
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"

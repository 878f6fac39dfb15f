# uploads_api/repositories/__init__.py
"""
Data access layer.
"""

from uploads_api.repositories.upload_repository import UploadRepository

__all__ = ["UploadRepository"]

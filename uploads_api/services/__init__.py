# uploads_api/services/__init__.py
"""
Upload pipeline services: content addressing, validation, remote fetch,
ingestion orchestration and secure retrieval.
"""

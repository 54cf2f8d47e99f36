"""
Shared dependencies for the API routers.
"""
from import_engine.integrations.storage import get_blob_store


def get_blob_store_dependency():
    """Blob store holding uploaded source files; overridden in tests."""
    return get_blob_store()

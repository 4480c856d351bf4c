"""
Storage module - Recording file allocation and removal.
"""

from resignal.services.storage.file_store import FileStore, LocalFileStore

__all__ = ["FileStore", "LocalFileStore"]

from .json_file_store import JsonFileStore

__all__ = ["JsonFileStore"]

from .filename import content_disposition, download_filename, sanitize_filename
from .hash import hash_stable

__all__ = ["content_disposition", "download_filename", "hash_stable", "sanitize_filename"]

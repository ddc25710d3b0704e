"""
Incident Triage - Media Module
Binary storage for report attachments.
"""

from src.media.image_store import LocalImageStore

__all__ = ["LocalImageStore"]

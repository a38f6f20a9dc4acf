"""Collaborators: Pretalx HTTP client and Nextcloud sync wrapper."""

from .client import MirrorResult, PretalxClient
from .nextcloud import NextcloudSync

__all__ = ["MirrorResult", "NextcloudSync", "PretalxClient"]

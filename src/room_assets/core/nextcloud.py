"""Wrapper around the ``nextcloudcmd`` command line sync client."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from ..config import Config
from ..errors import NextcloudSyncError

logger = logging.getLogger(__name__)

NEXTCLOUDCMD = "nextcloudcmd"


class NextcloudSync:
    """Synchronise the target directory with a Nextcloud folder.

    Args:
        target_dir: Local directory to sync.
        folder_url: WebDAV URL of the remote folder.
        user: Nextcloud user.
        password: Nextcloud password.
        silent: Pass ``--silent`` to reduce client output.
    """

    def __init__(
        self,
        target_dir: Path,
        folder_url: str,
        user: str,
        password: str,
        silent: bool = False,
    ) -> None:
        self.target_dir = target_dir
        self.folder_url = folder_url
        self.user = user
        self.password = password
        self.silent = silent

    @classmethod
    def from_config(cls, config: Config) -> NextcloudSync | None:
        """Build a ``NextcloudSync`` or return ``None`` if not configured."""
        if not config.nextcloud_enabled:
            return None
        return cls(
            target_dir=Path(config.target_dir),
            folder_url=config.nextcloud_folder_url or "",
            user=config.nextcloud_user or "",
            password=config.nextcloud_password or "",
            silent=config.nextcloud_silent,
        )

    def command(self) -> list[str]:
        cmd = [NEXTCLOUDCMD, "--user", self.user, "--password", self.password]
        if self.silent:
            cmd.append("--silent")
        cmd.extend([str(self.target_dir), self.folder_url])
        return cmd

    def run(self) -> None:
        """Run one sync pass.

        Raises:
            NextcloudSyncError: If the client is missing or exits non-zero.
        """
        logger.info(
            "Syncing %s with Nextcloud folder %s",
            self.target_dir,
            self.folder_url,
        )
        try:
            subprocess.run(self.command(), check=True)
        except FileNotFoundError as exc:
            raise NextcloudSyncError(
                f"{NEXTCLOUDCMD} not found on PATH"
            ) from exc
        except subprocess.CalledProcessError as exc:
            raise NextcloudSyncError(
                f"{NEXTCLOUDCMD} failed with exit code {exc.returncode}"
            ) from exc

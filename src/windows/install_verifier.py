"""
Install Verifier - silent MSI install of the VPN client plus config check
"""
import logging
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

from src.agent.exceptions import (
    CommandMissingError,
    ConfigParseError,
    InstallerDownloadError,
    InstallerFailedError,
)
from src.windows.mdm_config import read_property_list

logger = logging.getLogger(__name__)

MSI_SUCCESS = 0
MSI_SUCCESS_REBOOT_REQUIRED = 3010
SUCCESS_CODES = (MSI_SUCCESS, MSI_SUCCESS_REBOOT_REQUIRED)

ORGANIZATION_KEY = "organization"
DOWNLOAD_CHUNK = 8192


@dataclass(frozen=True)
class InstallAttempt:
    download_url: str
    installer_path: str
    exit_code: Optional[int] = None
    organization: Optional[str] = None


@dataclass(frozen=True)
class InstallResult:
    attempt: InstallAttempt
    reboot_required: bool = False
    organization_matches: Optional[bool] = None


class InstallVerifier:
    """Downloads, installs and verifies an MSI package"""

    def __init__(self, config_path, installer_name="installer.msi", settle_seconds=10,
                 download_timeout=120, runner=subprocess.run, sleep=time.sleep,
                 extra_properties=None):
        self.config_path = Path(config_path)
        self.installer_name = installer_name
        self.settle_seconds = settle_seconds
        self.download_timeout = download_timeout
        self.runner = runner
        self.sleep = sleep
        self.extra_properties = dict(extra_properties or {})

    def installer_path(self):
        return Path(tempfile.gettempdir()) / self.installer_name

    def download(self, url, destination):
        """
        Stream the installer to disk; errors are logged, not raised.
        Data goes to a .part file that is only renamed once complete.
        """
        logger.info(f"Downloading {url} -> {destination}")
        partial = destination.with_name(destination.name + ".part")
        try:
            r = requests.get(url, timeout=self.download_timeout, stream=True)
            r.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in r.iter_content(DOWNLOAD_CHUNK):
                    if chunk:
                        f.write(chunk)
            partial.replace(destination)
        except (requests.RequestException, OSError) as e:
            logger.error(f"Download failed: {e}")
            self.cleanup(partial)

    def build_command(self, installer_path, organization):
        cmd = ["msiexec.exe", "/i", str(installer_path), "/qn", f"ORGANIZATION={organization}"]
        for key, value in self.extra_properties.items():
            cmd.append(f"{key.upper()}={value}")
        return cmd

    def run_installer(self, installer_path, organization):
        cmd = self.build_command(installer_path, organization)
        logger.info(f"Running: {' '.join(cmd)}")
        try:
            result = self.runner(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            raise CommandMissingError("msiexec.exe not found")
        return result.returncode

    def read_organization(self):
        """Organization value from the installed config, None if unavailable"""
        try:
            values = read_property_list(self.config_path)
        except ConfigParseError as e:
            logger.warning(f"Could not verify configuration: {e}")
            return None
        org = values.get(ORGANIZATION_KEY)
        if org is None:
            logger.warning(f"No '{ORGANIZATION_KEY}' key in {self.config_path}")
        return org

    def cleanup(self, installer_path):
        try:
            if installer_path.exists():
                installer_path.unlink()
                logger.debug(f"Removed {installer_path}")
        except OSError as e:
            logger.warning(f"Could not remove installer {installer_path}: {e}")

    def install_and_verify(self, download_url, expected_org):
        """
        Download, install unattended and check the organization written to
        the generated config.

        Raises InstallerDownloadError if nothing was downloaded and
        InstallerFailedError for installer exit codes other than 0 / 3010.
        An organization mismatch is only logged as a warning.
        """
        path = self.installer_path()
        try:
            # A stale file from an earlier run must not pass the download check
            self.cleanup(path)
            self.cleanup(path.with_name(path.name + ".part"))
            self.download(download_url, path)
            if not path.exists():
                raise InstallerDownloadError(f"Installer not found at {path} after download")

            exit_code = self.run_installer(path, expected_org)
            if exit_code not in SUCCESS_CODES:
                raise InstallerFailedError(f"Installer failed with exit code {exit_code}", exit_code)

            reboot_required = exit_code == MSI_SUCCESS_REBOOT_REQUIRED
            if reboot_required:
                logger.info("Installation succeeded, reboot required")
            else:
                logger.info("Installation succeeded")

            # The client writes its config shortly after the MSI returns
            self.sleep(self.settle_seconds)

            org = self.read_organization()
            matches = None
            if org is not None:
                matches = org == expected_org
                if matches:
                    logger.info(f"Organization verified: {org}")
                else:
                    logger.warning(f"Organization mismatch: expected '{expected_org}', found '{org}'")

            attempt = InstallAttempt(
                download_url=download_url,
                installer_path=str(path),
                exit_code=exit_code,
                organization=org,
            )
            return InstallResult(attempt=attempt, reboot_required=reboot_required,
                                 organization_matches=matches)
        finally:
            self.cleanup(path)

"""
Unit tests for InstallVerifier
"""
import pytest
from unittest.mock import Mock, patch

import requests

from src.agent.exceptions import CommandMissingError, InstallerDownloadError, InstallerFailedError
from src.windows.install_verifier import InstallVerifier


DOWNLOAD_URL = "https://downloads.example.com/vpn.msi"


def mdm_xml(org):
    return f"<dict><key>organization</key><string>{org}</string></dict>"


class TestInstallVerifier:
    """Test suite for InstallVerifier"""

    @pytest.fixture
    def config_path(self, tmp_path):
        return tmp_path / "mdm.xml"

    @pytest.fixture
    def msiexec(self):
        return Mock(return_value=Mock(returncode=0, stdout="", stderr=""))

    @pytest.fixture
    def verifier(self, tmp_path, config_path, msiexec):
        verifier = InstallVerifier(
            config_path=config_path,
            installer_name="vpn.msi",
            settle_seconds=10,
            runner=msiexec,
            sleep=Mock(),
        )
        with patch.object(InstallVerifier, "installer_path", return_value=tmp_path / "vpn.msi"):
            yield verifier

    @pytest.fixture
    def download(self):
        """requests.get returning a small payload"""
        response = Mock()
        response.iter_content.return_value = [b"MSI", b"DATA"]
        with patch('src.windows.install_verifier.requests.get', return_value=response) as mock_get:
            yield mock_get

    def test_success(self, verifier, download, msiexec, config_path, tmp_path):
        config_path.write_text(mdm_xml("acme"))

        result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.attempt.exit_code == 0
        assert result.attempt.organization == "acme"
        assert result.organization_matches is True
        assert result.reboot_required is False
        download.assert_called_once_with(DOWNLOAD_URL, timeout=120, stream=True)
        cmd = msiexec.call_args[0][0]
        assert cmd == ["msiexec.exe", "/i", str(tmp_path / "vpn.msi"), "/qn", "ORGANIZATION=acme"]
        verifier.sleep.assert_called_once_with(10)
        assert not (tmp_path / "vpn.msi").exists()

    def test_reboot_required_is_success(self, verifier, download, msiexec, config_path):
        """Exit code 3010 counts as success"""
        msiexec.return_value = Mock(returncode=3010)
        config_path.write_text(mdm_xml("acme"))

        result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.reboot_required is True
        assert result.attempt.exit_code == 3010

    def test_installer_failure_is_fatal(self, verifier, download, msiexec, tmp_path):
        """Exit code 1603 aborts with the installer's code and cleans up"""
        msiexec.return_value = Mock(returncode=1603)

        with pytest.raises(InstallerFailedError) as exc:
            verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert exc.value.exit_code == 1603
        verifier.sleep.assert_not_called()
        assert not (tmp_path / "vpn.msi").exists()

    def test_organization_mismatch_is_a_warning(self, verifier, download, config_path, caplog):
        config_path.write_text(mdm_xml("other-org"))

        with caplog.at_level("WARNING"):
            result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.organization_matches is False
        assert result.attempt.organization == "other-org"
        assert "Organization mismatch" in caplog.text

    def test_missing_config_is_a_warning(self, verifier, download):
        result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.organization_matches is None
        assert result.attempt.organization is None

    def test_unparsable_config_is_a_warning(self, verifier, download, config_path):
        config_path.write_text("<dict><key>organization")

        result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.organization_matches is None

    def test_download_failure(self, verifier, msiexec):
        """Nothing on disk after the download means no install attempt"""
        with patch('src.windows.install_verifier.requests.get',
                   side_effect=requests.ConnectionError("unreachable")):
            with pytest.raises(InstallerDownloadError):
                verifier.install_and_verify(DOWNLOAD_URL, "acme")

        msiexec.assert_not_called()

    def test_http_error(self, verifier, msiexec):
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
        with patch('src.windows.install_verifier.requests.get', return_value=response):
            with pytest.raises(InstallerDownloadError):
                verifier.install_and_verify(DOWNLOAD_URL, "acme")

        msiexec.assert_not_called()

    def test_stale_installer_removed_first(self, verifier, msiexec, tmp_path):
        """A leftover file from an earlier run is not mistaken for a download"""
        (tmp_path / "vpn.msi").write_bytes(b"old")
        with patch('src.windows.install_verifier.requests.get',
                   side_effect=requests.Timeout("timed out")):
            with pytest.raises(InstallerDownloadError):
                verifier.install_and_verify(DOWNLOAD_URL, "acme")

        msiexec.assert_not_called()

    def test_truncated_download(self, verifier, msiexec, tmp_path):
        """A connection dropped mid-stream leaves no installer behind"""
        def chunks(size):
            yield b"MSI-PART"
            raise requests.exceptions.ChunkedEncodingError("connection broken")

        response = Mock()
        response.iter_content.side_effect = chunks
        with patch('src.windows.install_verifier.requests.get', return_value=response):
            with pytest.raises(InstallerDownloadError):
                verifier.install_and_verify(DOWNLOAD_URL, "acme")

        msiexec.assert_not_called()
        assert not (tmp_path / "vpn.msi").exists()
        assert not (tmp_path / "vpn.msi.part").exists()

    def test_download_renamed_when_complete(self, verifier, download, tmp_path):
        verifier.download(DOWNLOAD_URL, tmp_path / "vpn.msi")

        assert (tmp_path / "vpn.msi").read_bytes() == b"MSIDATA"
        assert not (tmp_path / "vpn.msi.part").exists()

    def test_utf16_config(self, verifier, download, config_path):
        config_path.write_text('<?xml version="1.0" encoding="UTF-16"?>' + mdm_xml("acme"),
                               encoding="utf-16")

        result = verifier.install_and_verify(DOWNLOAD_URL, "acme")

        assert result.organization_matches is True

    def test_missing_msiexec(self, verifier, download, msiexec):
        msiexec.side_effect = FileNotFoundError()

        with pytest.raises(CommandMissingError):
            verifier.install_and_verify(DOWNLOAD_URL, "acme")

    def test_extra_properties(self, tmp_path, config_path):
        verifier = InstallVerifier(config_path=config_path, extra_properties={"service_mode": "warp"})

        cmd = verifier.build_command(tmp_path / "vpn.msi", "acme")

        assert cmd[-2:] == ["ORGANIZATION=acme", "SERVICE_MODE=warp"]


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

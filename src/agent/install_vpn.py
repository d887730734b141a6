"""
Install VPN - silent install of the VPN client MSI and organization check
Runs as SYSTEM from the fleet agent. Exit codes: 0 success, 1 fatal error,
otherwise the installer's own exit code.
"""
import logging
import sys

from src.agent.config import load_config
from src.agent.exceptions import FleetScriptError
from src.agent.logging_setup import configure_logging
from src.windows.install_verifier import InstallVerifier

logger = logging.getLogger(__name__)


def install(config, verifier=None):
    verifier = verifier or InstallVerifier(
        config_path=config["vpn_config_path"],
        installer_name=config["vpn_installer_name"],
        settle_seconds=config["vpn_settle_seconds"],
        download_timeout=config["download_timeout"],
        extra_properties=config["vpn_extra_properties"],
    )
    result = verifier.install_and_verify(config["vpn_download_url"], config["vpn_organization"])

    if result.organization_matches is False:
        logger.warning("VPN client installed but the organization does not match")
    elif result.organization_matches is None:
        logger.warning("VPN client installed, organization could not be verified")
    else:
        logger.info("VPN client installed and verified")
    if result.reboot_required:
        logger.info("A reboot is required to finish the installation")
    return 0


def main():
    config = load_config()
    configure_logging(debug=config["debug"], log_file=config["log_file"] or None)

    logger.info("=" * 60)
    logger.info("  VPN client install")
    logger.info(f"  Download     : {config['vpn_download_url']}")
    logger.info(f"  Organization : {config['vpn_organization']}")
    logger.info("=" * 60)

    try:
        exit_code = install(config)
    except FleetScriptError as e:
        logger.error(str(e))
        exit_code = e.exit_code

    sys.exit(exit_code)


if __name__ == '__main__':
    main()

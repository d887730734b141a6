"""
Launch Browser - opens a fixed website on the active user's desktop
Supports both X11 and Wayland display servers. Must be run as root.
"""
import logging
import sys

from src.agent.config import load_config
from src.agent.exceptions import FleetScriptError, SessionNotFoundError
from src.agent.logging_setup import configure_logging
from src.linux.command_runner import CommandRunner, ensure_root
from src.linux.session_resolver import SessionResolver

logger = logging.getLogger(__name__)


def launch(config, resolver=None, runner=None):
    resolver = resolver or SessionResolver(process_scan_limit=config["process_scan_limit"])
    runner = runner or CommandRunner()

    session = resolver.resolve()
    env = resolver.resolve_display_environment(session)

    logger.info(f"Using DISPLAY={env.display}")
    logger.info(f"Using WAYLAND_DISPLAY={env.wayland_display}")
    logger.info(f"Using XAUTHORITY={env.xauthority}")

    runner.launch_browser(session, env, config["url"], config["browser"])
    # su reports the browser's status, the launcher itself always succeeds
    return 0


def main():
    config = load_config()
    configure_logging(debug=config["debug"], log_file=config["log_file"] or None)

    try:
        ensure_root()
        exit_code = launch(config)
    except SessionNotFoundError as e:
        logger.error(f"Error: {e}")
        if e.candidates:
            logger.error("Available sessions:")
            for line in e.candidates.splitlines():
                logger.error(f"  {line}")
        exit_code = 1
    except FleetScriptError as e:
        logger.error(f"Error: {e}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == '__main__':
    main()

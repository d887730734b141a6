"""
Run As User - executes an action in the active graphical user's session

Actions (config key `action`):
    browser          launch `browser` on `url` (default)
    notify           desktop notification (`notify_title`, `notify_message`)
    command          run `command` with the display environment
    session-command  run `command` as the session user, no display
Must be run as root.
"""
import logging
import sys

from src.agent.config import load_config
from src.agent.exceptions import FleetScriptError, SessionNotFoundError
from src.agent.logging_setup import configure_logging
from src.linux.command_runner import CommandRunner, ensure_root
from src.linux.session_resolver import SessionResolver

logger = logging.getLogger(__name__)

ACTIONS = ("browser", "notify", "command", "session-command")


def run_action(config, resolver=None, runner=None):
    """Resolve the session and run the configured action, return exit code"""
    action = config["action"]
    if action not in ACTIONS:
        logger.error(f"Unknown action '{action}', expected one of {', '.join(ACTIONS)}")
        return 1

    resolver = resolver or SessionResolver(process_scan_limit=config["process_scan_limit"])
    runner = runner or CommandRunner()

    session = resolver.resolve()

    if action == "session-command":
        return runner.run_as_session_user(session, config["command"])

    env = resolver.resolve_display_environment(session)
    if action == "notify":
        return runner.show_notification(session, env, config["notify_title"],
                                        config["notify_message"], config["notify_urgency"])
    if action == "command":
        return runner.run_as_graphical_user(session, env, config["command"])
    return runner.launch_browser(session, env, config["url"], config["browser"])


def main():
    config = load_config()
    configure_logging(debug=config["debug"], log_file=config["log_file"] or None)

    try:
        ensure_root()
        exit_code = run_action(config)
    except SessionNotFoundError as e:
        logger.error(str(e))
        if e.candidates:
            logger.error("Available sessions:")
            for line in e.candidates.splitlines():
                logger.error(f"  {line}")
        exit_code = e.exit_code
    except FleetScriptError as e:
        logger.error(str(e))
        exit_code = e.exit_code

    sys.exit(exit_code)


if __name__ == '__main__':
    main()

"""
Command Runner - executes commands as the desktop session user via su
"""
import logging
import os
import shlex
import subprocess

from src.agent.exceptions import (
    CommandMissingError,
    InvalidArgumentError,
    NotRootError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)

URGENCY_LEVELS = ("low", "normal", "critical")


def ensure_root(geteuid=None):
    """Raise NotRootError unless running as root"""
    if (geteuid or os.geteuid)() != 0:
        raise NotRootError("This script must be run as root.")


def build_shell_command(command, env=None):
    """Prefix a shell command with quoted KEY=VALUE assignments"""
    if env is None:
        return command
    assignments = " ".join(f"{key}={shlex.quote(value)}" for key, value in env.as_env().items())
    return f"{assignments} {command}" if assignments else command


class CommandRunner:
    """Runs commands in another user's context, optionally with a display"""

    def __init__(self, runner=subprocess.run):
        self.runner = runner

    def run_as_user(self, user, command, env=None):
        """
        Run `command` as `user` through `su -`.
        When env is given the DisplayEnvironment is injected, otherwise the
        command runs without display context. Returns the child exit code.
        """
        if not command or not command.strip():
            raise CommandMissingError("No command provided")
        if not user:
            raise SessionNotFoundError("Session user not set")

        shell = build_shell_command(command, env)
        mode = "with GUI" if env is not None else "no GUI"
        logger.info(f"Executing as {user} ({mode}): {command}")
        try:
            result = self.runner(["su", "-", user, "-c", shell])
        except FileNotFoundError:
            raise CommandMissingError("su not found")
        logger.debug(f"Command exited with {result.returncode}")
        return result.returncode

    def run_as_session_user(self, session, command):
        return self.run_as_user(session.user, command)

    def run_as_graphical_user(self, session, env, command):
        return self.run_as_user(session.user, command, env=env)

    def show_notification(self, session, env, title, message, urgency="normal"):
        """Desktop notification through notify-send"""
        if not title or not message:
            raise CommandMissingError("Title and message are required for show_notification")
        if urgency not in URGENCY_LEVELS:
            raise InvalidArgumentError(f"Invalid urgency '{urgency}', expected one of {', '.join(URGENCY_LEVELS)}")

        command = " ".join(["notify-send", "-u", urgency, shlex.quote(title), shlex.quote(message)])
        return self.run_as_graphical_user(session, env, command)

    def launch_browser(self, session, env, url, browser="firefox"):
        """Open `url` in `browser` on the user's desktop"""
        if not url:
            raise CommandMissingError("URL is required for launch_browser")
        command = f"{browser or 'firefox'} {shlex.quote(url)}"
        return self.run_as_graphical_user(session, env, command)

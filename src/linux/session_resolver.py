"""
Session Resolver - finds the active desktop session and its display context
"""
import logging
import subprocess
from dataclasses import replace

import psutil

from src.agent.exceptions import LeaderProcessError, LoginctlError, SessionNotFoundError
from src.linux import loginctl
from src.linux.models import DisplayEnvironment, Session

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY = ":0"
DEFAULT_WAYLAND_DISPLAY = "wayland-0"
XAUTHORITY_TEMPLATE = "/home/{user}/.Xauthority"
RUNTIME_DIR_TEMPLATE = "/run/user/{uid}"

DISPLAY_KEYS = ("DISPLAY", "WAYLAND_DISPLAY", "XAUTHORITY", "DBUS_SESSION_BUS_ADDRESS")

# Ordered selection tiers, first match wins
SESSION_TIERS = [
    ("seat0 graphical session",
     lambda row: row.seat == "seat0" and row.has_class("graphical")),
    ("seat0 user session",
     lambda row: row.seat == "seat0" and row.has_class("user")),
    ("graphical session",
     lambda row: row.has_class("graphical")),
    ("user session",
     lambda row: row.has_class("user") and not row.has_class("manager")),
]


def read_environ(pid):
    """Environment block of a process, empty if it is gone or unreadable"""
    try:
        return psutil.Process(pid).environ()
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        logger.debug(f"Cannot read environment of PID {pid}: {e}")
        return {}


def _has_display(env):
    return bool(env.get("DISPLAY") or env.get("WAYLAND_DISPLAY"))


class SessionResolver:
    """Locates the graphical login session on a Linux host"""

    def __init__(self, runner=subprocess.run, process_scan_limit=4096):
        self.runner = runner
        self.process_scan_limit = process_scan_limit

    def fill_class(self, row):
        """Older systemd has no CLASS column, ask show-session for it"""
        if row.session_class is not None:
            return row
        try:
            props = loginctl.show_session(row.session_id, ["Class"], runner=self.runner)
        except LoginctlError as e:
            logger.debug(f"Could not read class of session {row.session_id}: {e}")
            return row
        session_class = props.get("Class")
        if not session_class:
            return row
        return replace(row, session_class=session_class, tokens=row.tokens + (session_class,))

    def select(self, rows):
        """Apply the selection tiers to parsed loginctl rows"""
        for description, predicate in SESSION_TIERS:
            for row in rows:
                if predicate(row):
                    logger.debug(f"Matched {description}: {row.line}")
                    return row
            logger.debug(f"No {description} found, trying next tier")
        return None

    def resolve(self):
        """
        Find the active session.
        Raises SessionNotFoundError with the full candidate listing when no
        tier matches, LeaderProcessError when the session has no leader.
        """
        logger.debug("Searching for active graphical session...")
        rows, raw = loginctl.list_sessions(runner=self.runner)
        rows = [self.fill_class(row) for row in rows]

        row = self.select(rows)
        if row is None:
            candidates = loginctl.raw_listing(runner=self.runner) or raw
            raise SessionNotFoundError("Could not find an active user session.", candidates)

        props = loginctl.show_session(row.session_id, ["Name", "User", "Leader"], runner=self.runner)
        user = props.get("Name") or row.user
        try:
            uid = int(props.get("User") or row.uid)
        except ValueError:
            raise LoginctlError(f"Session {row.session_id} has no numeric uid: {props.get('User')!r}")

        leader = props.get("Leader", "")
        if not leader.isdigit() or int(leader) == 0:
            raise LeaderProcessError(f"Could not find a leader process for session {row.session_id}.")

        session = Session(session_id=row.session_id, user=user, uid=uid, leader_pid=int(leader))
        logger.info(f"Found session: {session.session_id} (user: {session.user}, uid: {session.uid})")
        return session

    def scan_user_processes(self, uid):
        """First process owned by uid that exposes a display, as (pid, environ)"""
        inspected = 0
        for proc in psutil.process_iter(["pid", "uids"]):
            uids = proc.info.get("uids")
            if uids is None or uids.effective != uid:
                continue
            if inspected >= self.process_scan_limit:
                logger.debug(f"Process scan limit ({self.process_scan_limit}) reached")
                break
            inspected += 1
            env = read_environ(proc.info["pid"])
            if _has_display(env):
                return proc.info["pid"], env
        return None, {}

    def resolve_display_environment(self, session):
        """
        Work out DISPLAY, WAYLAND_DISPLAY, XAUTHORITY and the bus address
        for a session. Never fails: missing values fall back to defaults.
        """
        logger.debug(f"Session leader PID: {session.leader_pid}")
        env = read_environ(session.leader_pid)
        values = {key: env.get(key, "") for key in DISPLAY_KEYS}
        source = "leader"

        # The leader (often a login shell or gdm helper) may not carry the
        # display variables, the user's desktop processes do.
        if not _has_display(values):
            logger.debug("Display vars not in leader process, searching user processes...")
            pid, found = self.scan_user_processes(session.uid)
            if pid is not None:
                values = {key: found.get(key, "") for key in DISPLAY_KEYS}
                source = f"pid {pid}"
                logger.debug(f"Found display environment from PID {pid}")

        if not _has_display(values):
            values["DISPLAY"] = DEFAULT_DISPLAY
            values["WAYLAND_DISPLAY"] = DEFAULT_WAYLAND_DISPLAY
            source = "defaults"
            logger.info(f"Using defaults: DISPLAY={DEFAULT_DISPLAY} WAYLAND_DISPLAY={DEFAULT_WAYLAND_DISPLAY}")

        if not values["XAUTHORITY"]:
            values["XAUTHORITY"] = XAUTHORITY_TEMPLATE.format(user=session.user)
            logger.debug(f"Using default XAUTHORITY={values['XAUTHORITY']}")

        if not values["DBUS_SESSION_BUS_ADDRESS"]:
            logger.warning("DBUS_SESSION_BUS_ADDRESS not set. Desktop notifications may not work.")

        display_env = DisplayEnvironment(
            display=values["DISPLAY"],
            wayland_display=values["WAYLAND_DISPLAY"],
            xauthority=values["XAUTHORITY"],
            dbus_address=values["DBUS_SESSION_BUS_ADDRESS"],
            runtime_dir=RUNTIME_DIR_TEMPLATE.format(uid=session.uid),
            source=source,
        )
        logger.debug(f"DISPLAY={display_env.display}")
        logger.debug(f"WAYLAND_DISPLAY={display_env.wayland_display}")
        logger.debug(f"XAUTHORITY={display_env.xauthority}")
        logger.debug(f"XDG_RUNTIME_DIR={display_env.runtime_dir}")
        return display_env

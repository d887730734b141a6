"""
loginctl adapter - runs loginctl and parses its text output
"""
import logging
import re
import subprocess

from src.agent.exceptions import LoginctlError
from src.linux.models import SessionListing

logger = logging.getLogger(__name__)

LOGINCTL = "loginctl"
LOGINCTL_TIMEOUT = 10

SESSION_CLASSES = (
    "user",
    "user-early",
    "user-incomplete",
    "greeter",
    "lock-screen",
    "background",
    "background-light",
    "manager",
    "manager-early",
    "graphical",
)

SEAT_RE = re.compile(r"^seat\d+$")


def _run(args, runner=subprocess.run):
    cmd = [LOGINCTL] + list(args)
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = runner(cmd, capture_output=True, text=True, timeout=LOGINCTL_TIMEOUT)
    except FileNotFoundError:
        raise LoginctlError("loginctl not found - is systemd-logind available?")
    except subprocess.TimeoutExpired:
        raise LoginctlError(f"loginctl {' '.join(args)} timed out")

    if result.returncode != 0:
        raise LoginctlError(
            f"loginctl {' '.join(args)} failed ({result.returncode}): {result.stderr.strip()}"
        )
    return result.stdout


def parse_session_line(line):
    """
    Parse one list-sessions row.
    Column layout changed across systemd releases (CLASS and LEADER only
    appear in newer ones), so seat and class are picked out by token shape.
    """
    tokens = tuple(line.split())
    if len(tokens) < 3:
        return None

    seat = None
    session_class = None
    for token in tokens[3:]:
        if seat is None and SEAT_RE.match(token):
            seat = token
        elif session_class is None and token in SESSION_CLASSES:
            session_class = token

    return SessionListing(
        session_id=tokens[0],
        uid=tokens[1],
        user=tokens[2],
        seat=seat,
        session_class=session_class,
        tokens=tokens,
        line=line.strip(),
    )


def parse_session_list(text):
    rows = []
    for line in text.splitlines():
        if not line.strip():
            continue
        row = parse_session_line(line)
        if row is None:
            logger.debug(f"Skipping unparsable loginctl row: {line!r}")
            continue
        rows.append(row)
    return rows


def list_sessions(runner=subprocess.run):
    """Return (rows, raw output) of `loginctl list-sessions --no-legend`"""
    raw = _run(["list-sessions", "--no-legend"], runner=runner)
    return parse_session_list(raw), raw


def raw_listing(runner=subprocess.run):
    """Human readable session table, for diagnostics only"""
    try:
        return _run(["list-sessions"], runner=runner)
    except LoginctlError as e:
        logger.debug(f"Could not list sessions: {e}")
        return ""


def parse_properties(text):
    """Parse KEY=VALUE lines from `loginctl show-session`"""
    props = {}
    for line in text.splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        props[key.strip()] = value.strip()
    return props


def show_session(session_id, properties, runner=subprocess.run):
    """Return the requested properties of one session"""
    args = ["show-session", str(session_id)]
    for prop in properties:
        args += ["-p", prop]
    return parse_properties(_run(args, runner=runner))

"""
Session data model - what loginctl and /proc tell us about the desktop user
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple


@dataclass(frozen=True)
class SessionListing:
    """One row of `loginctl list-sessions --no-legend`"""
    session_id: str
    uid: str
    user: str
    seat: Optional[str] = None
    session_class: Optional[str] = None
    tokens: Tuple[str, ...] = field(default_factory=tuple)
    line: str = ""

    def has_class(self, name):
        """True when a class token is `name` or a `name-...` variant"""
        return any(t == name or t.startswith(name + "-") for t in self.tokens[3:])


@dataclass(frozen=True)
class Session:
    """A resolved login session"""
    session_id: str
    user: str
    uid: int
    leader_pid: int


@dataclass(frozen=True)
class DisplayEnvironment:
    """Display context of a session, injected into commands run as its user"""
    display: str
    wayland_display: str
    xauthority: str
    dbus_address: str
    runtime_dir: str
    source: str = "leader"

    def as_env(self):
        """Environment variables to export, empty values skipped"""
        env = {
            "DISPLAY": self.display,
            "WAYLAND_DISPLAY": self.wayland_display,
            "XAUTHORITY": self.xauthority,
            "DBUS_SESSION_BUS_ADDRESS": self.dbus_address,
            "XDG_RUNTIME_DIR": self.runtime_dir,
        }
        return {k: v for k, v in env.items() if v}

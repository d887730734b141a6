"""
Fleet script errors - fatal errors abort the script, advisory ones are logged
"""


class FleetScriptError(Exception):
    """Base class for all script errors"""
    exit_code = 1


class NotRootError(FleetScriptError):
    """Raised when the script is not running as root"""
    pass


class LoginctlError(FleetScriptError):
    """Raised when loginctl is missing or its output is unusable"""
    pass


class SessionNotFoundError(FleetScriptError):
    """Raised when no login session matches any selection tier"""

    def __init__(self, message, candidates=""):
        super().__init__(message)
        self.candidates = candidates


class LeaderProcessError(FleetScriptError):
    """Raised when a session has no leader process"""
    pass


class CommandMissingError(FleetScriptError):
    """Raised when a required command or argument is empty"""
    pass


class InvalidArgumentError(FleetScriptError):
    """Raised when an argument has a value outside its allowed set"""
    pass


class InstallerDownloadError(FleetScriptError):
    """Raised when the installer package is not on disk after download"""
    pass


class InstallerFailedError(FleetScriptError):
    """Raised when the installer exits with a non-success code"""

    def __init__(self, message, exit_code):
        super().__init__(message)
        self.exit_code = exit_code


class ConfigParseError(FleetScriptError):
    """Raised when an installed configuration file cannot be read"""
    pass

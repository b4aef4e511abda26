"""Exception taxonomy shared by services and handlers."""

from typing import Optional

from xuibot.core.constants import Constants


class XUIBotError(Exception):
    """Base error. `code` is a key into Constants.ERROR_CODES."""
    
    code = "INTERNAL"
    
    def __init__(self, message: Optional[str] = None):
        super().__init__(message or Constants.ERROR_CODES[self.code])
        self.message = message or Constants.ERROR_CODES[self.code]


# Input errors

class InputError(XUIBotError):
    code = "INVALID_INPUT"


class HostInputError(InputError):
    """Malformed host-add text. `suggestion` holds a corrected line to resubmit."""
    
    def __init__(self, message: str, suggestion: Optional[str] = None):
        super().__init__(message)
        self.suggestion = suggestion


class InvalidStateError(InputError):
    code = "INVALID_STATE"


class DuplicateHostError(InputError):
    code = "DUPLICATE_HOST"


# State errors

class UserNotFoundError(XUIBotError):
    code = "USER_NOT_FOUND"


class HostNotFoundError(XUIBotError):
    code = "HOST_NOT_FOUND"


class NotInAddHostStateError(XUIBotError):
    code = "NOT_IN_ADD_HOST_STATE"


# Authorization

class PermissionDeniedError(XUIBotError):
    code = "UNAUTHORIZED"


# Collaborators

class PanelError(XUIBotError):
    """x-ui transport or protocol failure; message is kept verbatim."""
    code = "PANEL_ERROR"


class HostConnectionError(XUIBotError):
    code = "HOST_CONNECTION"


class StorageError(XUIBotError):
    code = "STORAGE_ERROR"


# Lifecycle

class MonitorStateError(XUIBotError):
    code = "MONITOR_STATE"

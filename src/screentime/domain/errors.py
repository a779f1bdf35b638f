"""Domain errors for screen-time enforcement."""


class ScreenTimeError(Exception):
    """Base error for the screen-time core."""


class NotFoundError(ScreenTimeError):
    """Raised when a looked-up record does not exist."""


class ChildNotFoundError(NotFoundError):
    """Raised when a child id is unknown."""


class DeviceNotFoundError(NotFoundError):
    """Raised when a device id is not registered."""


class DriverNotFoundError(NotFoundError):
    """Raised when a driver name is not registered."""


class DeviceAlreadyRegisteredError(ScreenTimeError):
    """Raised when registering a duplicate device id."""


class DriverAlreadyRegisteredError(ScreenTimeError):
    """Raised when registering a duplicate driver name."""


class InvalidChildError(ScreenTimeError):
    """Raised when a child record fails validation."""


class InvalidSessionError(ScreenTimeError):
    """Raised when a session record fails validation."""


class InvalidDeviceError(ScreenTimeError):
    """Raised when a device record fails validation."""

class IntakeError(RuntimeError):
    """Base error type."""


class ConfigError(IntakeError):
    """Config contract violation."""


class ManifestError(IntakeError):
    """Manifest could not be decoded, or a commit would break its invariants."""


class ScanError(IntakeError):
    """Scan root is missing or not a directory."""


class VolumeError(IntakeError):
    """No removable volume could be found."""


class BackendError(IntakeError):
    """A backend failed to process one item."""

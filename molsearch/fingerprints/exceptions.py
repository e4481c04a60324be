class InvalidFingerprintSettingsError(ValueError):
    """Raised when fingerprint settings are missing or violate a rule of their
    fingerprint type. The message names the violated rule."""

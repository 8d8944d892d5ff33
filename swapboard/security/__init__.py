"""Secret validation shared by the auth layer and the object store."""
from .secrets import MissingSecretError, is_placeholder, require_secret, require_secrets

__all__ = ["MissingSecretError", "is_placeholder", "require_secret", "require_secrets"]

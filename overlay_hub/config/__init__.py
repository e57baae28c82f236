"""Hub configuration: environment loading and validated models."""

from .loader import REQUIRED_VARS, load_config  # noqa: F401
from .model import HubConfig, IdentityCredentials  # noqa: F401

__all__ = ["HubConfig", "IdentityCredentials", "REQUIRED_VARS", "load_config"]

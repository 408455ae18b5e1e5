"""Login security control plane: escalating rate limits, idle-session expiry and login anomaly monitoring."""

__version__ = "0.1.0"

"""Open Day registration: slot reservation and capacity-consistency engine."""

__version__ = "1.0.0"

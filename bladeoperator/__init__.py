"""ChaosBlade resource types, reconciliation, pod sidecar mutation and file-system fault injection."""

__version__ = "1.0.0"
"""API versions, named-pipe paths, an example API group, generation planning and test helpers for a Windows CSI proxy."""

__version__ = "0.1.0"
"""Frame configuration, ordered containers and XML project and message definition loaders."""

__version__ = "0.1.0"
"""Isolated Docker workspaces for AI coding agents: detection, configuration, ports, containers, git and workspace records."""

__version__ = "0.1.0"
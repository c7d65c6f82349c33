"""Wayland break reminder daemon, its control helper, and the protocol code they use."""

__version__ = "0.6.0"
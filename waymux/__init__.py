"""A daemon, wire protocol and client for starting Wayland compositor sessions inside a host session."""

__version__ = "0.1.0"
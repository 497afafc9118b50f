"""moltboot: restore, configure and supervise the moltbot gateway on container boot."""

__version__ = "0.1.0"

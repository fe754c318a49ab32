"""Omnisession: session lifecycle and identity consistency for omnichannel assistants."""

__version__ = "0.1.0"

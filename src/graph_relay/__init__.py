"""Microsoft Graph endpoints exposed as invokable tools."""

__version__ = "0.1.0"

"""Log into GaggleAMP and bulk-schedule pending activities when there are any."""

__version__ = "0.1.0"

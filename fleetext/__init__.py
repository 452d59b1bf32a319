"""Remote installation, query and removal of extensions on trusted targets."""

__version__ = "0.1.0"

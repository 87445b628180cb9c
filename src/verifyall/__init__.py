"""verifyall: top-level build verification pipeline."""

__version__ = "0.3.0"

"""Interactive fiction publishing platform with branching chapters."""

__version__ = "0.1.0"

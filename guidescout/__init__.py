"""guidescout -- locate author-provided guides across package ecosystems."""

__version__ = "0.1.0"

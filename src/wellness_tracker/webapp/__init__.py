from wellness_tracker import __version__

__all__ = ["__version__"]

"""dotgit — rebuild a git repository from an exposed ``.git`` directory."""

__version__ = "0.1.0"

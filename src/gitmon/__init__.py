"""gitmon - monitor git repositories and mail a digest of new commits."""

__version__ = "0.2.0"

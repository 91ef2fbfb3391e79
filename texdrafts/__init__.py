"""texdrafts - incremental rebuilds and rotating drafts for LaTeX projects."""

__version__ = "0.1.0"

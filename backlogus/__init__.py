"""Backlogus - personal game and movie backlog tracker."""

__version__ = "0.3.0"

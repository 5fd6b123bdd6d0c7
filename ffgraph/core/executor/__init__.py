"""Emission accumulator for graph-to-command generation."""

from .command_builder import FFmpegCommand, NodeRef, RefType, StreamRef

__all__ = ["FFmpegCommand", "NodeRef", "RefType", "StreamRef"]

"""Builder contracts and implementations."""

from .base import BuildArtifact, Builder, BuildSpec
from .command import CommandBuilder
from .inprocess import InProcessBuilder

__all__ = [
    "BuildArtifact",
    "BuildSpec",
    "Builder",
    "CommandBuilder",
    "InProcessBuilder",
]

"""Folder data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Folder:
    """Platform view of a provider group."""

    path: str

"""
Editor-agnostic providers for tombo.

Example:
    >>> from tombo.providers import CompletionProvider, HoverProvider
"""

from __future__ import annotations

from tombo.providers.actions import QuickActionProvider
from tombo.providers.base import BaseProvider, CodeAction, CompletionItem, Hover
from tombo.providers.completion import CompletionProvider
from tombo.providers.hover import HoverProvider

__all__ = [
    "BaseProvider",
    "CodeAction",
    "CompletionItem",
    "CompletionProvider",
    "Hover",
    "HoverProvider",
    "QuickActionProvider",
]

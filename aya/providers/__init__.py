"""Generation providers."""

from aya.providers.base import GeneratedContent, Generator

__all__ = ["GeneratedContent", "Generator"]

"""
Sub-document lookup and mutation.
"""

from .collection import Collection, LookupInResult, MutateInResult
from .specs import NO_VALUE, LookupInSpec, MutateInSpec, MutationMacro

__all__ = [
    "Collection",
    "LookupInResult",
    "MutateInResult",
    "LookupInSpec",
    "MutateInSpec",
    "MutationMacro",
    "NO_VALUE",
]

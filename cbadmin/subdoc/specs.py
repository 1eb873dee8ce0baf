"""
Sub-document operation specs.

LookupInSpec and MutateInSpec are immutable descriptions of single path
operations built through their classmethods, for example:

    specs = [
        LookupInSpec.get("name"),
        LookupInSpec.exists("_sync", is_xattr=True),
    ]
    mutations = [
        MutateInSpec.upsert("address.city", "Paris", create_path=True),
        MutateInSpec.array_append("tags", ["a", "b"], has_multiple=True),
        MutateInSpec.increment("visits", 1),
    ]
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..constants import SubDocOpType, SubdocFlag
from ..core.kv import SubDocOp


class MutationMacro(str, Enum):
    """Server-side macros expanded into extended attributes on mutation."""

    CAS = "${Mutation.CAS}"
    SEQ_NO = "${Mutation.seqno}"
    VALUE_CRC32C = "${Mutation.value_crc32c}"


class _NoValue:
    def __repr__(self) -> str:
        return "NO_VALUE"


NO_VALUE = _NoValue()
"""Marker for operations that carry no value (None is a valid JSON value)."""


def _path_flags(is_xattr: bool, create_path: bool = False) -> SubdocFlag:
    flags = SubdocFlag.NONE
    if create_path:
        flags |= SubdocFlag.CREATE_PATH
    if is_xattr:
        flags |= SubdocFlag.XATTR
    return flags


def _value_flags(value: Any, is_xattr: bool, create_path: bool) -> SubdocFlag:
    """Flags for a value-carrying op; macros are always expanded in xattrs."""
    if isinstance(value, MutationMacro):
        return _path_flags(True, create_path) | SubdocFlag.EXPAND_MACROS
    return _path_flags(is_xattr, create_path)


@dataclass(frozen=True)
class LookupInSpec:
    op: SubDocOpType
    path: str = ""
    flags: SubdocFlag = SubdocFlag.NONE

    @classmethod
    def get(cls, path: str, is_xattr: bool = False) -> "LookupInSpec":
        return cls(SubDocOpType.GET, path, _path_flags(is_xattr))

    @classmethod
    def get_full(cls) -> "LookupInSpec":
        """Fetch the whole document body."""
        return cls(SubDocOpType.GET_DOC)

    @classmethod
    def exists(cls, path: str, is_xattr: bool = False) -> "LookupInSpec":
        return cls(SubDocOpType.EXISTS, path, _path_flags(is_xattr))

    @classmethod
    def count(cls, path: str, is_xattr: bool = False) -> "LookupInSpec":
        """Number of elements in the array or object at path."""
        return cls(SubDocOpType.GET_COUNT, path, _path_flags(is_xattr))

    def to_op(self) -> SubDocOp:
        return SubDocOp(op=self.op, path=self.path, flags=self.flags)


@dataclass(frozen=True)
class MutateInSpec:
    """
    A single mutation.

    multi_value marks array operations whose value is a list of elements
    to add individually rather than one nested array.
    """

    op: SubDocOpType
    path: str = ""
    flags: SubdocFlag = SubdocFlag.NONE
    value: Any = NO_VALUE
    multi_value: bool = False

    @property
    def has_value(self) -> bool:
        return self.value is not NO_VALUE

    @classmethod
    def insert(
        cls, path: str, value: Any, create_path: bool = False, is_xattr: bool = False
    ) -> "MutateInSpec":
        """Add a value at path, failing if it already exists."""
        return cls(SubDocOpType.DICT_ADD, path, _value_flags(value, is_xattr, create_path), value)

    @classmethod
    def upsert(
        cls, path: str, value: Any, create_path: bool = False, is_xattr: bool = False
    ) -> "MutateInSpec":
        return cls(SubDocOpType.DICT_SET, path, _value_flags(value, is_xattr, create_path), value)

    @classmethod
    def upsert_full(cls, value: Any) -> "MutateInSpec":
        """Replace the whole document body."""
        return cls(SubDocOpType.SET_DOC, value=value)

    @classmethod
    def replace(cls, path: str, value: Any, is_xattr: bool = False) -> "MutateInSpec":
        return cls(SubDocOpType.REPLACE, path, _path_flags(is_xattr), value)

    @classmethod
    def remove(cls, path: str, is_xattr: bool = False) -> "MutateInSpec":
        return cls(SubDocOpType.DELETE, path, _path_flags(is_xattr))

    @classmethod
    def remove_full(cls) -> "MutateInSpec":
        """Delete the whole document."""
        return cls(SubDocOpType.DELETE_DOC)

    @classmethod
    def array_append(
        cls,
        path: str,
        value: Any,
        create_path: bool = False,
        is_xattr: bool = False,
        has_multiple: bool = False,
    ) -> "MutateInSpec":
        return cls(
            SubDocOpType.ARRAY_PUSH_LAST,
            path,
            _value_flags(value, is_xattr, create_path),
            value,
            has_multiple,
        )

    @classmethod
    def array_prepend(
        cls,
        path: str,
        value: Any,
        create_path: bool = False,
        is_xattr: bool = False,
        has_multiple: bool = False,
    ) -> "MutateInSpec":
        return cls(
            SubDocOpType.ARRAY_PUSH_FIRST,
            path,
            _value_flags(value, is_xattr, create_path),
            value,
            has_multiple,
        )

    @classmethod
    def array_insert(
        cls,
        path: str,
        value: Any,
        create_path: bool = False,
        is_xattr: bool = False,
        has_multiple: bool = False,
    ) -> "MutateInSpec":
        """Insert at an array position; path must end in an index, e.g. "tags[1]"."""
        return cls(
            SubDocOpType.ARRAY_INSERT,
            path,
            _value_flags(value, is_xattr, create_path),
            value,
            has_multiple,
        )

    @classmethod
    def array_add_unique(
        cls, path: str, value: Any, create_path: bool = False, is_xattr: bool = False
    ) -> "MutateInSpec":
        return cls(
            SubDocOpType.ARRAY_ADD_UNIQUE, path, _value_flags(value, is_xattr, create_path), value
        )

    @classmethod
    def increment(
        cls, path: str, delta: int, create_path: bool = False, is_xattr: bool = False
    ) -> "MutateInSpec":
        return cls(SubDocOpType.COUNTER, path, _path_flags(is_xattr, create_path), delta)

    @classmethod
    def decrement(
        cls, path: str, delta: int, create_path: bool = False, is_xattr: bool = False
    ) -> "MutateInSpec":
        return cls(SubDocOpType.COUNTER, path, _path_flags(is_xattr, create_path), -delta)

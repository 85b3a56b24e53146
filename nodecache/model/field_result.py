from typing import Any


class FieldResult:
    """
    ◤━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◥
    ABSTRACT CLASS FieldResult

    What a modifier returns for a field: either Keep(new_value) or Remove.
    ◣━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━◢
    """
    @staticmethod
    def is_remove() -> bool:
        return False


class Keep(FieldResult):
    __slots__ = ('value',)

    def __init__(self, value: Any):
        self.value: Any = value

    def __eq__(self, other):
        return isinstance(other, Keep) and other.value == self.value

    def __repr__(self):
        return f'Keep({self.value!r})'


class _Remove(FieldResult):
    @staticmethod
    def is_remove() -> bool:
        return True

    def __repr__(self):
        return 'Remove'


Remove = _Remove()
"""Singleton: the field (or the whole cached list) is to be removed from its entity"""

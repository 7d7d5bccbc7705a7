"""
Field Model for FormHawk

Normalized representation of a single form input.
"""

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Mapping, Optional

DEFAULT_TYPE = 'text'
SELECT_TYPE = 'select'
PASSWORD_TYPE = 'password'
HIDDEN_TYPE = 'hidden'

# Input types that never carry user-controlled data
NON_FUZZABLE_TYPES = frozenset({'submit', 'button', 'image', 'reset', 'file'})


@dataclass(frozen=True)
class FieldSpec:
    """Represents one named form input."""
    name: str
    field_type: str = DEFAULT_TYPE
    value: str = ''
    extra_attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Values are always strings, never None
        if self.value is None:
            object.__setattr__(self, 'value', '')
        elif not isinstance(self.value, str):
            object.__setattr__(self, 'value', str(self.value))
        object.__setattr__(self, 'field_type', (self.field_type or DEFAULT_TYPE).lower())
        object.__setattr__(self, 'extra_attributes', MappingProxyType(dict(self.extra_attributes or {})))

    @property
    def is_password(self) -> bool:
        return self.field_type == PASSWORD_TYPE

    @property
    def is_hidden(self) -> bool:
        return self.field_type == HIDDEN_TYPE

    @property
    def is_fuzzable(self) -> bool:
        return self.field_type not in NON_FUZZABLE_TYPES

    def with_value(self, value: str) -> 'FieldSpec':
        """Return a copy of this field holding ``value``."""
        return replace(self, value='' if value is None else str(value))

    def details(self) -> Dict[str, str]:
        """Flat attribute view: extra attributes plus type and value."""
        details = dict(self.extra_attributes)
        details['type'] = self.field_type
        details['value'] = self.value
        return details

    @classmethod
    def from_details(cls, name: str, details: Mapping[str, Optional[str]]) -> 'FieldSpec':
        """
        Build a field from an attribute mapping.

        ``type`` and ``value`` are picked out; everything else (except
        ``name``) is kept as extra attributes.
        """
        extra = {k: '' if v is None else str(v) for k, v in details.items()
                 if k not in ('name', 'type', 'value')}
        value = details.get('value')
        return cls(
            name=name,
            field_type=details.get('type') or DEFAULT_TYPE,
            value='' if value is None else str(value),
            extra_attributes=extra
        )

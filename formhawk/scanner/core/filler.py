"""
Sample Value Filler for FormHawk

Picks plausible values for empty form fields so that submissions pass
basic server-side validation (an email field gets an email address, a
numeric field gets a number, and so on).
"""

import re
from typing import Dict, List, Mapping, Optional, Tuple

from formhawk.scanner.core.fields import FieldSpec

# Values by input type, checked before names
TYPE_VALUES = {
    'email': 'formhawk@example.com',
    'number': '132',
    'range': '5',
    'tel': '5551234567',
    'url': 'http://example.com/',
    'date': '2024-01-15',
    'datetime-local': '2024-01-15T10:30',
    'month': '2024-01',
    'week': '2024-W03',
    'time': '10:30',
    'color': '#000000',
    'password': '5543!%formhawk_secret',
    'checkbox': 'on',
}

# Values by field name, first match wins
NAME_VALUES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r'mail', re.I), 'formhawk@example.com'),
    (re.compile(r'pass|pwd', re.I), '5543!%formhawk_secret'),
    (re.compile(r'user|usr|login', re.I), 'formhawk_user'),
    (re.compile(r'phone|mobile|tel', re.I), '5551234567'),
    (re.compile(r'zip|postal', re.I), '10001'),
    (re.compile(r'url|site|website|homepage', re.I), 'http://example.com/'),
    (re.compile(r'date|dob|birth', re.I), '2024-01-15'),
    (re.compile(r'year', re.I), '2024'),
    (re.compile(r'name', re.I), 'formhawk_name'),
    (re.compile(r'amount|price|qty|quantity|count', re.I), '100'),
    (re.compile(r'num|age', re.I), '132'),
    (re.compile(r'account', re.I), '12'),
    (re.compile(r'id$|_id|^id', re.I), '1'),
    (re.compile(r'txt|text|comment|message|desc', re.I), 'formhawk_text'),
]

DEFAULT_VALUE = '1'


class SampleFiller:
    """
    Type-aware filler for form fields.

    Fields that already hold a value keep it.
    """

    def __init__(self, default_value: Optional[str] = None):
        self.default_value = DEFAULT_VALUE if default_value is None else default_value

    def value_for(self, spec: FieldSpec) -> str:
        """Pick a sample value for a single field."""
        if spec.field_type in TYPE_VALUES:
            return TYPE_VALUES[spec.field_type]

        for pattern, value in NAME_VALUES:
            if pattern.search(spec.name):
                return value

        return self.default_value

    def fill(self, fields: Mapping[str, FieldSpec]) -> Dict[str, str]:
        """
        Fill empty fields with sample values.

        Args:
            fields: Form fields as ``name => FieldSpec``

        Returns:
            ``name => value`` for every field
        """
        return {
            name: spec.value if spec.value else self.value_for(spec)
            for name, spec in fields.items()
        }

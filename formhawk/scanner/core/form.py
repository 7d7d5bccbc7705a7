"""
Form Element for FormHawk

Immutable representation of one discovered HTML form. Variants are derived
with the ``with_*`` methods, which always return a new Form and leave the
source untouched.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import unquote_plus
import logging

from formhawk.scanner.core.errors import FieldNotFound
from formhawk.scanner.core.fields import FieldSpec

logger = logging.getLogger(__name__)

FORM = 'form'


class AlterationState(Enum):
    """
    How a Form relates to the form it was discovered as.

    Read by:
    - the auditor, to gate ORIGINAL/SAMPLE_FILLED variants through the
      AuditedSet (see ``identity.audit_id``)
    - the submitter, to force training of ORIGINAL/SAMPLE_FILLED responses
    """
    CLEAN = 'clean'
    ORIGINAL = 'original'
    SAMPLE_FILLED = 'sample_filled'
    INJECTED = 'injected'


class FormMethod:
    GET = 'get'
    POST = 'post'

    @classmethod
    def normalize(cls, method: Optional[str]) -> str:
        if method and str(method).strip().lower() == cls.POST:
            return cls.POST
        return cls.GET


# Characters that must be percent-encoded in a urlencoded body value,
# on top of '%' and '+' which are handled first.
_BODY_RESERVED = ';&\\=\0'


@dataclass(frozen=True)
class Form:
    """Represents an HTML form and its inputs."""
    url: str
    action: str = ''
    method: str = FormMethod.GET
    name: Optional[str] = None
    form_id: Optional[str] = None
    fields: Mapping[str, FieldSpec] = field(default_factory=dict)
    nonce_name: Optional[str] = None
    alteration_state: AlterationState = AlterationState.CLEAN
    altered_field: Optional[str] = None
    source_node: Optional[str] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'method', FormMethod.normalize(self.method))
        object.__setattr__(self, 'action', self.action or self.url)
        object.__setattr__(self, 'fields', MappingProxyType(dict(self.fields or {})))

        if self.nonce_name is not None and self.nonce_name not in self.fields:
            raise FieldNotFound(self.nonce_name)

    @classmethod
    def build(
            cls,
            url: str,
            inputs: Optional[Mapping[str, Any]] = None,
            action: Optional[str] = None,
            method: Optional[str] = None,
            name: Optional[str] = None,
            form_id: Optional[str] = None
    ) -> 'Form':
        """
        Create a Form from a caller-supplied field map.

        Args:
            url: URL of the page which includes the form
            inputs: Either simple ``name => value`` pairs or detailed
                    ``name => {'type': 'hidden', 'value': 'token'}`` mappings
            action: Form action, defaults to ``url``
            method: Form method, defaults to GET
            name: Form name
            form_id: Form ID attribute

        Returns:
            Form instance
        """
        fields = {}
        for field_name, value_or_info in (inputs or {}).items():
            if isinstance(value_or_info, Mapping):
                fields[field_name] = FieldSpec.from_details(field_name, value_or_info)
            else:
                fields[field_name] = FieldSpec(name=field_name, value=value_or_info)

        return cls(
            url=url,
            action=action or url,
            method=method,
            name=name,
            form_id=form_id,
            fields=fields
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def type(self) -> str:
        return FORM

    @property
    def inputs(self) -> Dict[str, str]:
        """Plain ``name => value`` view of the fields."""
        return {n: f.value for n, f in self.fields.items()}

    @property
    def canonical_id(self) -> str:
        """Value-independent identity of this form."""
        from formhawk.scanner.core.identity import compute_id
        return compute_id(self)

    @property
    def name_or_id(self) -> Optional[str]:
        return self.name or self.form_id

    @property
    def password_fields(self) -> Tuple[str, ...]:
        return tuple(n for n, f in self.fields.items() if f.is_password)

    @property
    def requires_password(self) -> bool:
        """Check if the form contains one or more password fields."""
        return any(f.is_password for f in self.fields.values())

    @property
    def has_nonce(self) -> bool:
        return self.nonce_name is not None

    @property
    def requires_sync_dispatch(self) -> bool:
        """
        Forms holding a nonce must be refreshed and submitted in blocking
        mode, otherwise concurrent refreshes invalidate each other.
        """
        return self.has_nonce

    @property
    def is_original(self) -> bool:
        return self.alteration_state is AlterationState.ORIGINAL

    @property
    def is_sample(self) -> bool:
        return self.alteration_state is AlterationState.SAMPLE_FILLED

    @property
    def requires_training(self) -> bool:
        """Responses to original/sample submissions always feed the trainer."""
        return self.is_original or self.is_sample

    def field_type_for(self, field_name: str) -> Optional[str]:
        spec = self.fields.get(field_name)
        return spec.field_type if spec else None

    def details_for(self, field_name: str) -> Dict[str, str]:
        spec = self.fields.get(field_name)
        return spec.details() if spec else {}

    def structural_key(self) -> Tuple:
        """Identity used to drop literal duplicate variants."""
        return (
            self.action,
            self.method,
            tuple(sorted(self.inputs.items()))
        )

    def to_html(self) -> Optional[str]:
        return self.source_node

    def simple(self) -> Dict[str, Any]:
        """Plain representation of the form and its inputs."""
        return {
            'url': self.url,
            'action': self.action,
            'method': self.method,
            'name': self.name,
            'id': self.form_id,
            'inputs': self.inputs
        }

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_values(self, values: Mapping[str, Any]) -> 'Form':
        """
        Return a copy with the given field values.

        Names without an existing field are added as text fields.
        """
        fields = dict(self.fields)
        for field_name, value in values.items():
            spec = fields.get(field_name) or FieldSpec(name=field_name)
            fields[field_name] = spec.with_value(value)
        return replace(self, fields=fields)

    def with_state(self, state: AlterationState, altered_field: Optional[str] = None) -> 'Form':
        return replace(self, alteration_state=state, altered_field=altered_field)

    def with_nonce_field(self, field_name: str) -> 'Form':
        """
        Return a copy whose ``field_name`` input is refreshed before every
        submission.

        Use only when strictly necessary: submissions of such forms run in
        blocking mode.

        Raises:
            FieldNotFound: If ``field_name`` is not one of the form's inputs
        """
        if field_name not in self.fields:
            raise FieldNotFound(field_name)
        return replace(self, nonce_name=field_name)

    # ------------------------------------------------------------------
    # Request body codec
    # ------------------------------------------------------------------

    @staticmethod
    def encode(value: str) -> str:
        """Encode reserved characters for inclusion in a request body."""
        value = str(value).replace('%', '%25').replace('+', '%2B').replace(' ', '+')
        for char in _BODY_RESERVED:
            value = value.replace(char, '%{:02X}'.format(ord(char)))
        return value

    @staticmethod
    def decode(value: Optional[str]) -> str:
        """Decode a string encoded for an HTTP request body."""
        return unquote_plus(value or '')

    @classmethod
    def parse_request_body(cls, body: Optional[str]) -> Dict[str, str]:
        """
        Parse a request body generated by submitting a form.

        Returns:
            Parameters as ``name => value``
        """
        params = {}
        for pair in (body or '').split('&'):
            if not pair:
                continue
            param_name, _, value = pair.partition('=')
            params[cls.decode(param_name)] = cls.decode(value)
        return params

    def request_body(self) -> str:
        """Encode the form inputs as an urlencoded request body."""
        return '&'.join(
            f"{self.encode(n)}={self.encode(v)}" for n, v in self.inputs.items()
        )

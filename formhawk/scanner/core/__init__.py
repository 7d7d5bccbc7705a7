"""
FormHawk Scanner Core Components

Contains the form model, parser, mutation generator, deduplication,
nonce refresh and HTTP transport.
"""

from formhawk.scanner.core.errors import FormError, FieldNotFound, NonceRefreshFailed
from formhawk.scanner.core.fields import FieldSpec
from formhawk.scanner.core.form import AlterationState, Form
from formhawk.scanner.core.parser import parse_forms, forms_from_response
from formhawk.scanner.core.identity import AuditedSet, audit_id, compute_id
from formhawk.scanner.core.filler import SampleFiller
from formhawk.scanner.core.mutator import MutationOptions, field_mutations, mutate
from formhawk.scanner.core.nonce import NonceRefresher
from formhawk.scanner.core.requester import AsyncRequester, Response, TransferMode
from formhawk.scanner.core.submitter import FormSubmitter
from formhawk.scanner.core.auditor import FormAuditor

__all__ = [
    'FormError', 'FieldNotFound', 'NonceRefreshFailed',
    'FieldSpec', 'AlterationState', 'Form',
    'parse_forms', 'forms_from_response',
    'AuditedSet', 'audit_id', 'compute_id',
    'SampleFiller', 'MutationOptions', 'field_mutations', 'mutate',
    'NonceRefresher', 'AsyncRequester', 'Response', 'TransferMode',
    'FormSubmitter', 'FormAuditor',
]

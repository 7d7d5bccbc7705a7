"""
FormHawk Scanner

Form parsing, mutation and submission components.
"""

from formhawk.scanner.core.auditor import FormAuditor
from formhawk.scanner.core.requester import AsyncRequester

__all__ = ['FormAuditor', 'AsyncRequester']

"""
Form Auditor for FormHawk

Runs one audit round for a form: generates the variants for a seed, drops
original/sample variants already audited during this scan run and submits
the rest.
"""

import asyncio
from typing import List, Optional, Tuple
import logging

from formhawk.scanner.core.filler import SampleFiller
from formhawk.scanner.core.form import Form
from formhawk.scanner.core.identity import AuditedSet, audit_id
from formhawk.scanner.core.mutator import MutationOptions, MutationStrategy, field_mutations, mutate
from formhawk.scanner.core.requester import Response
from formhawk.scanner.core.submitter import FormSubmitter

logger = logging.getLogger(__name__)


class FormAuditor:
    """
    Audits forms with seed payloads.

    The AuditedSet is shared by every auditor of a scan run so that each
    original/sample variant is submitted at most once per run.
    """

    def __init__(
            self,
            submitter: FormSubmitter,
            audited: Optional[AuditedSet] = None,
            filler: Optional[SampleFiller] = None,
            strategy: MutationStrategy = field_mutations
    ):
        self.submitter = submitter
        self.audited = audited if audited is not None else AuditedSet()
        self.filler = filler or SampleFiller()
        self.strategy = strategy

    def _skip(self, variant: Form, seed: str, auditor: Optional[str]) -> bool:
        if not variant.requires_training:
            return False
        return not self.audited.check_and_mark(audit_id(variant, seed, auditor))

    def variants(
            self,
            form: Form,
            seed: str,
            options: Optional[MutationOptions] = None,
            auditor: Optional[str] = None
    ) -> List[Form]:
        """Variants of ``form`` that still need to be submitted."""
        queued = []
        for variant in mutate(form, seed, options, self.strategy, self.filler):
            if self._skip(variant, seed, auditor):
                logger.debug(f"Skipping already audited {variant.alteration_state.value} variant of {form.action}")
                continue
            queued.append(variant)
        return queued

    async def audit(
            self,
            form: Form,
            seed: str,
            options: Optional[MutationOptions] = None,
            auditor: Optional[str] = None
    ) -> List[Tuple[Form, Response]]:
        """
        Audit ``form`` with ``seed``.

        Args:
            form: Form to audit
            seed: Payload to inject
            options: Mutation options
            auditor: Name of the auditing module, part of the audit key of
                     injected variants

        Returns:
            (variant, response) pairs for every submitted variant
        """
        queued = self.variants(form, seed, options, auditor)
        responses = await asyncio.gather(*[self.submitter.submit(v) for v in queued])

        results = [(v, r) for v, r in zip(queued, responses) if r is not None]
        logger.info(f"Audited {form.action}: {len(results)}/{len(queued)} variant(s) submitted")
        return results

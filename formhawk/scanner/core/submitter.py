"""
Form Submitter for FormHawk

Submission-time hook between a form variant and the HTTP transport.
Decides the transfer mode, refreshes nonces and feeds the trainer.
"""

import asyncio
from typing import Callable, Dict, List, Optional
import logging

from formhawk.scanner.core.errors import NonceRefreshFailed
from formhawk.scanner.core.form import Form, FormMethod
from formhawk.scanner.core.identity import compute_id
from formhawk.scanner.core.nonce import NonceRefresher
from formhawk.scanner.core.requester import AsyncRequester, Response, TransferMode

logger = logging.getLogger(__name__)

Trainer = Callable[[Form, Response], None]


class FormSubmitter:
    """
    Submits form variants through an AsyncRequester.

    Forms holding a nonce are refreshed and submitted in blocking mode, with
    the refresh and the submission running as one unit per form identity.
    A failed refresh skips the submission.
    """

    def __init__(
            self,
            requester: AsyncRequester,
            refresher: Optional[NonceRefresher] = None,
            trainer: Optional[Trainer] = None
    ):
        """
        Args:
            requester: HTTP transport
            refresher: Nonce refresher, defaults to one fetching via ``requester``
            trainer: Called with every (form, response) pair that must be trained on
        """
        self.requester = requester
        self.refresher = refresher or NonceRefresher(requester.fetch)
        self.trainer = trainer
        # identity => [lock, number of submissions holding or awaiting it]
        self._form_locks: Dict[str, List] = {}

    async def _dispatch(self, form: Form, mode: TransferMode) -> Response:
        if form.method == FormMethod.POST:
            return await self.requester.post(form.action, data=form.inputs, use_cache=False, mode=mode)
        return await self.requester.get(form.action, data=form.inputs, use_cache=False, mode=mode)

    async def _refresh_and_dispatch(self, form: Form) -> Optional[Response]:
        key = compute_id(form)
        if key not in self._form_locks:
            self._form_locks[key] = [asyncio.Lock(), 0]
        entry = self._form_locks[key]
        entry[1] += 1

        try:
            async with entry[0]:
                try:
                    form = await self.refresher.refresh(form)
                except NonceRefreshFailed as e:
                    logger.warning(f"Could not refresh nonce because the original form could not be found: {e}")
                    return None
                return await self._dispatch(form, TransferMode.SYNC)
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._form_locks[key]

    async def submit(self, form: Form, mode: TransferMode = TransferMode.ASYNC) -> Optional[Response]:
        """
        Submit a form.

        Args:
            form: Form to submit
            mode: Transfer mode for forms that do not require blocking dispatch

        Returns:
            Response, or None if the submission was skipped
        """
        if form.requires_training:
            state = 'original' if form.is_original else 'sample'
            logger.debug(f"Submitting form with {state} values; overriding trainer option.")

        if form.requires_sync_dispatch:
            response = await self._refresh_and_dispatch(form)
            if response is None:
                return None
        else:
            response = await self._dispatch(form, mode)

        if form.requires_training and self.trainer is not None:
            self.trainer(form, response)

        return response

"""
Nonce Refresh for FormHawk

Forms carrying a single-use token have to be re-fetched right before each
submission so that the token they carry is still valid.
"""

import asyncio
import aiohttp
from typing import Awaitable, Callable, Optional
import logging

from formhawk.scanner.core.errors import NonceRefreshFailed
from formhawk.scanner.core.form import Form
from formhawk.scanner.core.identity import compute_id
from formhawk.scanner.core.parser import parse_forms

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[str]]


class NonceRefresher:
    """
    Re-fetches the page a form came from and copies the current nonce value
    of the matching form into the copy about to be submitted.
    """

    def __init__(self, fetch: Fetcher, timeout: Optional[float] = 30, features: str = 'lxml'):
        """
        Args:
            fetch: Coroutine function returning the body of a URL
            timeout: Seconds to wait for the page; a timeout counts as
                     "matching form not found"
            features: BeautifulSoup tree builder used to parse the page
        """
        self.fetch = fetch
        self.timeout = timeout
        self.features = features

    async def _fetch(self, url: str) -> str:
        try:
            return await asyncio.wait_for(self.fetch(url), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out refetching {url}")
        except aiohttp.ClientError as e:
            logger.warning(f"Could not refetch {url}: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error refetching {url}: {e}")
        return ''

    async def refresh(self, form: Form) -> Form:
        """
        Return a copy of ``form`` holding a fresh nonce.

        Forms without a nonce are returned unchanged.

        Raises:
            NonceRefreshFailed: If the page no longer holds a matching form
        """
        if not form.has_nonce:
            return form

        stale_id = compute_id(form)
        logger.info(f"Refreshing nonce for '{form.nonce_name}'.")

        body = await self._fetch(form.url)
        for candidate in parse_forms(form.url, body, self.features):
            if compute_id(candidate) != stale_id:
                continue

            nonce = candidate.fields.get(form.nonce_name)
            if nonce is None:
                continue

            logger.info(f"Got new nonce '{nonce.value}'.")
            return form.with_values({form.nonce_name: nonce.value})

        raise NonceRefreshFailed(stale_id)

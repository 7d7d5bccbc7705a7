"""
tests/test_submission.py — Unit tests for nonce refresh, form submission and
audit rounds.

The HTTP transport is replaced by an in-memory fake; coroutines are driven
with asyncio.run.
"""
import asyncio

import pytest

from formhawk.scanner.core.auditor import FormAuditor
from formhawk.scanner.core.errors import NonceRefreshFailed
from formhawk.scanner.core.form import AlterationState, Form
from formhawk.scanner.core.identity import AuditedSet
from formhawk.scanner.core.mutator import MutationOptions
from formhawk.scanner.core.nonce import NonceRefresher
from formhawk.scanner.core.parser import parse_forms
from formhawk.scanner.core.requester import Response, TransferMode
from formhawk.scanner.core.submitter import FormSubmitter

PAGE = "http://example.com/login"


def login_page(token: str) -> str:
    return (
        '<html><body><form action="/do-login" method="post">'
        '<input name="user"><input type="hidden" name="token" value="%s">'
        '</form></body></html>' % token
    )


class FakeRequester:
    """Records submissions and serves pages from a dict."""

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.calls = []
        self.fetched = []

    async def fetch(self, url):
        self.fetched.append(url)
        return self.pages.get(url, "")

    def _respond(self, method, url, data, mode):
        self.calls.append({"method": method, "url": url, "data": dict(data or {}), "mode": mode})
        return Response(url=url, status=200, headers={}, body="ok", elapsed=0, mode=mode)

    async def get(self, url, data=None, use_cache=True, mode=TransferMode.ASYNC):
        return self._respond("GET", url, data, mode)

    async def post(self, url, data=None, use_cache=True, mode=TransferMode.ASYNC):
        return self._respond("POST", url, data, mode)


def stale_login_form() -> Form:
    return parse_forms(PAGE, login_page("stale"))[0].with_nonce_field("token")


class ResetRequester(FakeRequester):
    """Every page fetch fails at the socket level."""

    async def fetch(self, url):
        self.fetched.append(url)
        raise OSError("connection reset")


# ---------------------------------------------------------------------------
# NonceRefresher
# ---------------------------------------------------------------------------


class TestNonceRefresher:
    def test_refresh_copies_fresh_nonce(self):
        requester = FakeRequester({PAGE: login_page("fresh")})
        form = stale_login_form().with_values({"user": "<xss>"})

        refreshed = asyncio.run(NonceRefresher(requester.fetch).refresh(form))

        assert refreshed.inputs["token"] == "fresh"
        assert refreshed.inputs["user"] == "<xss>"
        assert form.inputs["token"] == "stale"
        assert requester.fetched == [PAGE]

    def test_form_without_nonce_unchanged(self):
        requester = FakeRequester()
        form = parse_forms(PAGE, login_page("x"))[0]
        assert asyncio.run(NonceRefresher(requester.fetch).refresh(form)) is form
        assert requester.fetched == []

    def test_missing_form_raises(self):
        requester = FakeRequester({PAGE: "<html><body>gone</body></html>"})
        with pytest.raises(NonceRefreshFailed):
            asyncio.run(NonceRefresher(requester.fetch).refresh(stale_login_form()))

    def test_different_form_does_not_match(self):
        other = '<form action="/do-login" method="post"><input name="token" value="x"></form>'
        requester = FakeRequester({PAGE: other})
        with pytest.raises(NonceRefreshFailed):
            asyncio.run(NonceRefresher(requester.fetch).refresh(stale_login_form()))

    def test_timeout_counts_as_not_found(self):
        async def slow_fetch(url):
            await asyncio.sleep(1)
            return login_page("fresh")

        with pytest.raises(NonceRefreshFailed):
            asyncio.run(NonceRefresher(slow_fetch, timeout=0.01).refresh(stale_login_form()))

    def test_fetch_error_counts_as_not_found(self):
        requester = ResetRequester()
        with pytest.raises(NonceRefreshFailed):
            asyncio.run(NonceRefresher(requester.fetch).refresh(stale_login_form()))
        assert requester.fetched == [PAGE]


# ---------------------------------------------------------------------------
# FormSubmitter
# ---------------------------------------------------------------------------


class TestFormSubmitter:
    def test_plain_get_submission(self):
        requester = FakeRequester()
        form = Form.build(PAGE, {"q": "1"}, action="http://example.com/search")

        response = asyncio.run(FormSubmitter(requester).submit(form))

        assert response.status == 200
        assert requester.calls == [{
            "method": "GET", "url": "http://example.com/search",
            "data": {"q": "1"}, "mode": TransferMode.ASYNC,
        }]

    def test_post_submission(self):
        requester = FakeRequester()
        form = Form.build(PAGE, {"q": "1"}, method="post")
        asyncio.run(FormSubmitter(requester).submit(form))
        assert requester.calls[0]["method"] == "POST"

    def test_nonce_form_refreshed_and_sync(self):
        requester = FakeRequester({PAGE: login_page("fresh")})

        response = asyncio.run(FormSubmitter(requester).submit(stale_login_form()))

        assert response.mode is TransferMode.SYNC
        call = requester.calls[0]
        assert call["mode"] is TransferMode.SYNC
        assert call["data"]["token"] == "fresh"
        assert call["url"] == "http://example.com/do-login"

    def test_failed_refresh_skips_dispatch(self):
        requester = FakeRequester({PAGE: ""})
        response = asyncio.run(FormSubmitter(requester).submit(stale_login_form()))
        assert response is None
        assert requester.calls == []

    def test_trainer_receives_original_and_sample(self):
        trained = []
        requester = FakeRequester()
        submitter = FormSubmitter(requester, trainer=lambda f, r: trained.append(f.alteration_state))
        form = Form.build(PAGE, {"q": ""})

        async def run():
            await submitter.submit(form.with_state(AlterationState.ORIGINAL))
            await submitter.submit(form.with_state(AlterationState.SAMPLE_FILLED))
            await submitter.submit(form.with_state(AlterationState.INJECTED, "q"))

        asyncio.run(run())
        assert trained == [AlterationState.ORIGINAL, AlterationState.SAMPLE_FILLED]

    def test_concurrent_nonce_submissions_do_not_overlap(self):
        active = []
        overlaps = []

        class SlowRequester(FakeRequester):
            async def fetch(self, url):
                active.append(url)
                if len(active) > 1:
                    overlaps.append(url)
                await asyncio.sleep(0.01)
                return login_page("fresh")

            async def post(self, url, data=None, use_cache=True, mode=TransferMode.ASYNC):
                await asyncio.sleep(0.01)
                active.pop()
                return self._respond("POST", url, data, mode)

        requester = SlowRequester()
        submitter = FormSubmitter(requester)
        form = stale_login_form()

        async def run():
            return await asyncio.gather(*[submitter.submit(form) for _ in range(3)])

        responses = asyncio.run(run())
        assert all(r is not None for r in responses)
        assert overlaps == []

    def test_form_locks_released_after_submission(self):
        requester = FakeRequester({PAGE: login_page("fresh")})
        submitter = FormSubmitter(requester)
        form = stale_login_form()

        async def run():
            await asyncio.gather(*[submitter.submit(form) for _ in range(3)])
            requester.pages = {}
            return await submitter.submit(form)

        assert asyncio.run(run()) is None
        assert len(requester.calls) == 3
        assert submitter._form_locks == {}


# ---------------------------------------------------------------------------
# FormAuditor
# ---------------------------------------------------------------------------


class TestFormAuditor:
    def make_form(self) -> Form:
        return Form.build(PAGE, {"q": "", "lang": {"type": "hidden", "value": "en"}})

    def test_audit_submits_all_variants(self):
        requester = FakeRequester()
        auditor = FormAuditor(FormSubmitter(requester), AuditedSet())

        results = asyncio.run(auditor.audit(self.make_form(), "<xss>"))

        assert [v.alteration_state for v, _ in results] == [
            AlterationState.INJECTED,
            AlterationState.INJECTED,
            AlterationState.ORIGINAL,
            AlterationState.SAMPLE_FILLED,
        ]
        assert len(requester.calls) == 4

    def test_special_variants_audited_once_per_run(self):
        requester = FakeRequester()
        audited = AuditedSet()
        auditor = FormAuditor(FormSubmitter(requester), audited)

        async def run():
            await auditor.audit(self.make_form(), "<xss>", auditor="xss")
            return await auditor.audit(self.make_form(), "' OR 1=1", auditor="sqli")

        second = asyncio.run(run())
        assert [v.alteration_state for v, _ in second] == [
            AlterationState.INJECTED,
            AlterationState.INJECTED,
        ]
        assert len(audited) == 2

    def test_same_target_reached_twice_is_gated(self):
        audited = AuditedSet()
        auditor = FormAuditor(FormSubmitter(FakeRequester()), audited)
        first = self.make_form()
        # Same action, method and names, different values
        second = first.with_values({"lang": "de"})

        assert len(auditor.variants(first, "x")) == 4
        queued = auditor.variants(second, "y")
        assert all(v.alteration_state is AlterationState.INJECTED for v in queued)

    def test_reset_allows_new_run(self):
        audited = AuditedSet()
        auditor = FormAuditor(FormSubmitter(FakeRequester()), audited)
        auditor.variants(self.make_form(), "x")
        audited.reset()
        assert len(auditor.variants(self.make_form(), "x")) == 4

    def test_skip_original(self):
        auditor = FormAuditor(FormSubmitter(FakeRequester()), AuditedSet())
        queued = auditor.variants(self.make_form(), "x", MutationOptions(skip_original=True))
        assert all(v.alteration_state is AlterationState.INJECTED for v in queued)

    def test_failed_nonce_refresh_excluded(self):
        requester = FakeRequester({PAGE: ""})
        auditor = FormAuditor(FormSubmitter(requester), AuditedSet())

        results = asyncio.run(auditor.audit(stale_login_form(), "<xss>"))

        assert results == []
        assert requester.calls == []

    def test_fetch_error_does_not_abort_round(self):
        requester = ResetRequester()
        auditor = FormAuditor(FormSubmitter(requester), AuditedSet())
        plain = Form.build(PAGE, {"q": ""}, action="http://example.com/search")

        async def run():
            return await asyncio.gather(
                auditor.audit(stale_login_form(), "<xss>"),
                auditor.audit(plain, "<xss>"),
            )

        stale_results, plain_results = asyncio.run(run())

        assert stale_results == []
        assert plain_results
        assert all(c["url"] == "http://example.com/search" for c in requester.calls)

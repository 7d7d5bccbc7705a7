"""
tests/test_cli.py — Unit tests for the command line entry point.

Page loading is replaced so that no request leaves the process.
"""
import pytest
from click.testing import CliRunner

import run
from formhawk.scanner.core.form import Form

URL = "http://example.com/login"


class FakeRequester:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False


@pytest.fixture
def page(monkeypatch):
    forms = [Form.build(URL, {"user": "", "token": {"type": "hidden", "value": "abc"}}, method="post")]

    async def fake_load_forms(requester, url, cfg):
        return forms

    monkeypatch.setattr(run, "_make_requester", lambda cfg: FakeRequester())
    monkeypatch.setattr(run, "_load_forms", fake_load_forms)
    return forms


def invoke(*args):
    return CliRunner().invoke(run.cli, ["--env", "testing", *args])


# ---------------------------------------------------------------------------
# mutate
# ---------------------------------------------------------------------------


class TestMutateCommand:
    def test_lists_variants(self, page):
        result = invoke("mutate", URL, "--seed", "<xss>")
        assert result.exit_code == 0, result.output
        assert "variant(s)" in result.output
        assert "Nonce field" not in result.output

    def test_nonce_option_marks_field(self, page):
        result = invoke("mutate", URL, "--seed", "<xss>", "--nonce", "token")
        assert result.exit_code == 0, result.output
        assert "Nonce field: token" in result.output

    def test_unknown_nonce_field_warns(self, page):
        result = invoke("mutate", URL, "--seed", "<xss>", "--nonce", "csrf")
        assert result.exit_code == 0, result.output
        assert "Could not find field named 'csrf'." in result.output
        assert "Nonce field" not in result.output

    def test_form_index_out_of_range(self, page):
        result = invoke("mutate", URL, "--seed", "<xss>", "--form", "3")
        assert result.exit_code != 0
        assert "No form #3" in result.output


# ---------------------------------------------------------------------------
# forms
# ---------------------------------------------------------------------------


class TestFormsCommand:
    def test_lists_fields(self, page):
        result = invoke("forms", URL)
        assert result.exit_code == 0, result.output
        assert "Found 1 form(s)" in result.output
        assert "- token (hidden) = 'abc'" in result.output

"""
HTML Form Parser for FormHawk

Extracts forms and their input fields from HTML documents:
- <input> and <textarea> fields (unnamed ones are skipped)
- <select> fields, defaulting to the selected or first option
- Form actions resolved against <base href> or the page URL

Parsing is best-effort: broken markup yields fewer forms, never an error.
"""

from typing import Dict, List, Optional
from urllib.parse import urljoin
from bs4 import BeautifulSoup
import logging

from formhawk.scanner.core.fields import FieldSpec, SELECT_TYPE
from formhawk.scanner.core.form import Form

logger = logging.getLogger(__name__)

FIELD_TAGS = ['textarea', 'input', 'select']


def _make_soup(html: str, features: str = 'lxml') -> Optional[BeautifulSoup]:
    try:
        return BeautifulSoup(html, features, multi_valued_attributes=None)
    except Exception as e:
        logger.debug(f"{features} could not parse document ({e}), falling back to html.parser")

    try:
        return BeautifulSoup(html, 'html.parser', multi_valued_attributes=None)
    except Exception as e:
        logger.debug(f"Unparsable document skipped: {e}")
        return None


def _attributes(tag) -> Dict[str, str]:
    return {k: '' if v is None else str(v) for k, v in tag.attrs.items()}


def _resolve_base(soup: BeautifulSoup, url: str) -> str:
    """Use <base href> when present, the page URL otherwise."""
    base_tag = soup.find('base', href=True)
    if base_tag is None:
        return url
    href = str(base_tag['href']).strip()
    return urljoin(url, href) if href else url


def _select_field(name: str, select, select_attrs: Dict[str, str]) -> FieldSpec:
    """
    Pick the value of a <select>.

    A ``selected`` option overrides any earlier choice; without one the
    first option is kept.
    """
    options = select.find_all('option')
    if not options:
        return FieldSpec(name=name, field_type=SELECT_TYPE, value='', extra_attributes=select_attrs)

    chosen = None
    for option in options:
        details = dict(select_attrs)
        details.update(_attributes(option))
        details['type'] = SELECT_TYPE
        if option.get('value') is None:
            details['value'] = option.get_text()

        if 'selected' in option.attrs:
            chosen = details
        elif chosen is None:
            chosen = details

    return FieldSpec.from_details(name, chosen)


def _form_from_element(url: str, base_url: str, form_tag) -> Form:
    attrs = _attributes(form_tag)

    action = attrs.get('action', '').strip()
    action = urljoin(base_url, action) if action else url

    fields: Dict[str, FieldSpec] = {}
    for elem in form_tag.find_all(FIELD_TAGS):
        # Stay inside this form; nested forms own their own fields
        if elem.find_parent('form') is not form_tag:
            continue

        elem_attrs = _attributes(elem)
        name = elem_attrs.pop('name', None)
        if not name:
            continue

        if elem.name == 'select':
            fields[name] = _select_field(name, elem, elem_attrs)
        else:
            # Last occurrence wins
            fields[name] = FieldSpec.from_details(name, elem_attrs)

    return Form(
        url=url,
        action=action,
        method=attrs.get('method'),
        name=attrs.get('name'),
        form_id=attrs.get('id'),
        fields=fields,
        source_node=str(form_tag)
    )


def parse_forms(url: str, html: Optional[str], features: str = 'lxml') -> List[Form]:
    """
    Extract forms from an HTML document.

    Args:
        url: URL of the document, used to resolve relative actions
        html: HTML content
        features: Preferred BeautifulSoup tree builder

    Returns:
        Forms in document order
    """
    if not html:
        return []

    soup = _make_soup(str(html), features)
    if soup is None:
        return []

    base_url = _resolve_base(soup, url)

    forms = []
    for form_tag in soup.find_all('form'):
        forms.append(_form_from_element(url, base_url, form_tag))

    logger.debug(f"Found {len(forms)} form(s) on {url}")
    return forms


def forms_from_response(response, features: str = 'lxml') -> List[Form]:
    """Extract forms from the body of an HTTP response."""
    return parse_forms(response.url, response.body, features)

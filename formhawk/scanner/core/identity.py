"""
Identity and Deduplication for FormHawk

Computes value-independent identities for forms and keeps track of which
audit targets have already been dispatched during a scan run.
"""

import threading
from typing import Iterable, List, Mapping, Optional, Set, Union
from urllib.parse import parse_qsl, urlsplit
import logging

from formhawk.scanner.core.form import AlterationState, Form

logger = logging.getLogger(__name__)

ORIGINAL_VALUES = '__original_values__'
SAMPLE_VALUES = '__sample_values__'

ParameterSource = Union[Mapping[str, object], Iterable[str]]


def _action_path(action: str) -> str:
    """Strip the query string and any path parameters (e.g. ``;jsessionid=``)."""
    return action.split('?', 1)[0].split(';', 1)[0]


def _query_names(action: str) -> List[str]:
    query = urlsplit(action).query
    return [name for name, _ in parse_qsl(query, keep_blank_values=True)]


def compute_id(form: Form, parameters: Optional[ParameterSource] = None) -> str:
    """
    Compute the canonical identity of a form.

    Two forms with the same action path, method and parameter names collide
    regardless of their values.

    Args:
        form: Form to identify
        parameters: Parameter names to use instead of the form's fields,
                    either a mapping (keys are used) or an iterable of names

    Returns:
        Identity string ``path::method::[names]``
    """
    if parameters is None:
        parameters = form.fields

    names = set(_query_names(form.action))
    names.update(str(name) for name in parameters if name is not None)

    return f"{_action_path(form.action)}::{form.method}::{sorted(names)}"


def audit_id(form: Form, seed: str = '', auditor: Optional[str] = None) -> str:
    """
    Key under which a submission of ``form`` is recorded in the AuditedSet.

    Original and sample variants ignore both the seed and the auditor so
    that they are submitted once per scan, whichever auditor gets there
    first.
    """
    if form.alteration_state is AlterationState.ORIGINAL:
        marker, auditor = ORIGINAL_VALUES, None
    elif form.alteration_state is AlterationState.SAMPLE_FILLED:
        marker, auditor = SAMPLE_VALUES, None
    else:
        marker = seed

    key = f"{compute_id(form)}:{marker}"
    if auditor:
        key = f"{auditor}:{key}"
    return key


class AuditedSet:
    """
    Record of audit targets already dispatched during one scan run.

    Owned by the caller: create one per scan run and share it between every
    concurrent audit task. ``check_and_mark`` is atomic, so among any number
    of simultaneous callers with the same key exactly one gets ``True``.
    """

    def __init__(self, keys: Optional[Iterable[str]] = None):
        self._lock = threading.Lock()
        self._keys: Set[str] = set(keys or ())

    def check_and_mark(self, key: str) -> bool:
        """
        Record ``key`` if it has not been seen yet.

        Returns:
            True if the key was absent and has now been recorded,
            False if it was already present (nothing changes)
        """
        with self._lock:
            if key in self._keys:
                return False
            self._keys.add(key)
            return True

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)

    def reset(self):
        """Forget everything; called when a new scan run begins."""
        with self._lock:
            self._keys.clear()

    def snapshot(self) -> Set[str]:
        """Copy of the recorded keys, for an external checkpoint layer."""
        with self._lock:
            return set(self._keys)

    def load(self, keys: Iterable[str]):
        """Merge previously checkpointed keys."""
        with self._lock:
            self._keys.update(keys)

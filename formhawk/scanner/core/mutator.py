"""
Mutation Generator for FormHawk

Turns one form and a seed payload into the ordered list of variants that
get submitted during an audit round:
- one injected variant per fuzzable field (pluggable strategy)
- a variant holding the original values
- a variant holding sample values
Password confirmation fields are kept in sync and literal duplicates are
dropped.
"""

from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Iterable, List, Optional
import logging

from formhawk.scanner.core.fields import NON_FUZZABLE_TYPES
from formhawk.scanner.core.filler import SampleFiller
from formhawk.scanner.core.form import AlterationState, Form

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationOptions:
    """Mutation options."""
    skip_original: bool = False
    skip_fields: FrozenSet[str] = field(default_factory=frozenset)
    skip_types: FrozenSet[str] = NON_FUZZABLE_TYPES
    append: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'skip_fields', frozenset(self.skip_fields))
        object.__setattr__(self, 'skip_types', frozenset(self.skip_types))


MutationStrategy = Callable[[Form, str, MutationOptions], Iterable[Form]]


def field_mutations(form: Form, seed: str, options: MutationOptions) -> List[Form]:
    """
    Default per-field strategy: one variant per fuzzable field with that
    field's value replaced by (or, with ``append``, suffixed with) the seed.
    """
    variants = []
    for name, spec in form.fields.items():
        if name in options.skip_fields or spec.field_type in options.skip_types:
            continue

        value = spec.value + seed if options.append else seed
        variants.append(
            form.with_values({name: value}).with_state(AlterationState.INJECTED, name)
        )
    return variants


def mirror_passwords(form: Form, variants: List[Form]) -> List[Form]:
    """
    Give the second password field the first one's value in every variant.

    Two password fields usually mean "retype your password", which the
    server validates before it ever looks at the payload. Forms with any
    other number of password fields are left alone.
    """
    password_fields = form.password_fields
    if len(password_fields) != 2:
        return variants

    first, second = password_fields
    return [
        v.with_values({second: v.inputs[first]}) if first in v.fields else v
        for v in variants
    ]


def deduplicate(variants: Iterable[Form]) -> List[Form]:
    """Drop structurally identical variants, keeping the first one seen."""
    seen = set()
    unique = []
    for variant in variants:
        key = variant.structural_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(variant)
    return unique


def mutate(
        form: Form,
        seed: str,
        options: Optional[MutationOptions] = None,
        strategy: MutationStrategy = field_mutations,
        filler: Optional[SampleFiller] = None
) -> List[Form]:
    """
    Generate the variants of ``form`` for ``seed``.

    Args:
        form: Source form, never modified
        seed: Payload to inject
        options: Mutation options
        strategy: Per-field mutation strategy producing the injected variants
        filler: Sample value filler, defaults to SampleFiller()

    Returns:
        Ordered list of unique variants
    """
    options = options or MutationOptions()
    variants = list(strategy(form, seed, options))

    if not options.skip_original:
        # Default values may be valid and present new attack vectors
        variants.append(form.with_state(AlterationState.ORIGINAL))

        filler = filler or SampleFiller()
        variants.append(
            form.with_values(filler.fill(form.fields)).with_state(AlterationState.SAMPLE_FILLED)
        )

    variants = deduplicate(mirror_passwords(form, variants))

    logger.debug(f"Generated {len(variants)} variant(s) for {form.action}")
    return variants

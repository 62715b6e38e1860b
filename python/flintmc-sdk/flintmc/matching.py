"""Tolerant comparison between declared block ids and server renderings.

Test files name blocks the way commands spell them (``minecraft:oak_planks``)
while the client reports free-form renderings (``OakPlanks``,
``BlockState { name: OakPlanks, ... }``). Matching normalizes both sides
into the following equivalence classes before comparing:

Declared id (:func:`normalize_block_id`)
    - a ``[...]`` state suffix is dropped,
    - the namespace (everything up to the last ``:``) is dropped,
    - the text is case-folded,
    - underscores are removed.

Observed rendering (:func:`normalize_observed`)
    - the text is case-folded,
    - underscores are removed.
    The namespace is *not* stripped here: renderings contain
    ``name: value`` pairs whose colons are not namespace separators.

:func:`block_matches` then succeeds when either normalized string
contains the other. This tolerates prefixes and suffixes on both sides at
the cost of false positives when one name is a substring of an unrelated
name, e.g. an observed ``Air`` matches an expected ``oak_stairs``. That
risk is accepted; tests that need to tell such blocks apart should check
a block state property as well.

Property values are matched against the raw rendering by
:func:`property_matches`, or against a single property read
by :func:`state_value_matches` when the rendering omits it.
"""

from __future__ import annotations

import logging

from flintmc.timeline import format_value

logger = logging.getLogger(__name__)


def normalize_block_id(block_id: str) -> str:
    """Normalize a declared block id, e.g. ``minecraft:Oak_Planks`` -> ``oakplanks``."""
    name = block_id.split("[", 1)[0].strip()
    name = name.rsplit(":", 1)[-1]
    return name.casefold().replace("_", "")


def normalize_observed(rendering: str) -> str:
    """Normalize a server rendering, e.g. ``Oak_Planks`` -> ``oakplanks``."""
    return rendering.strip().casefold().replace("_", "")


def block_matches(observed: str | None, expected: str) -> bool:
    """Return True if ``observed`` renders the declared block ``expected``.

    ``None`` (block not loaded) and empty strings never match.
    """
    if observed is None:
        return False
    want = normalize_block_id(expected)
    seen = normalize_observed(observed)
    if not want or not seen:
        return False
    return want in seen or seen in want


def property_patterns(name: str, value: object) -> tuple[str, str, str]:
    """Return the case-folded spellings of ``name = value`` in a rendering.

    Some numeric states are rendered with a leading underscore
    (``level: _0``), hence the third form.
    """
    text = format_value(value)
    return (
        f"{name}: {text}".casefold(),
        f'{name}: "{text}"'.casefold(),
        f"{name}: _{text}".casefold(),
    )


def property_matches(observed: str | None, name: str, value: object) -> bool:
    """Return True if the raw rendering shows property ``name`` set to ``value``."""
    if observed is None:
        return False
    haystack = observed.casefold()
    return any(p in haystack for p in property_patterns(name, value))


def state_value_matches(actual: str | None, value: object) -> bool:
    """Return True if a single property value read from the session shows ``value``."""
    if actual is None:
        return False
    return format_value(value).casefold() in actual.casefold()

"""
Resolution of loosely specified references to stored record ids.

Rows identify related records by email, card number, name or some other
human-entered key. Resolution tries operator-supplied manual matches first,
then each lookup strategy in order, and remembers every answer (including
"not found") for the rest of the run.
"""
import logging
import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from import_engine.domain.imports.errors import AmbiguousReferenceError, UnresolvedReferenceError

logger = logging.getLogger(__name__)

Loader = Callable[[], Optional[str]]

_MISSING = object()


class ResolutionCache:
    """
    Run-scoped memo of lookup results, keyed by (namespace, normalized key).

    A stored None is a remembered miss.
    """

    def __init__(self):
        self._entries: Dict[Tuple[str, str], Optional[str]] = {}
        self.lookups = 0

    def __contains__(self, item: Tuple[str, str]) -> bool:
        return item in self._entries

    def get(self, namespace: str, key: str):
        return self._entries.get((namespace, key), _MISSING)

    def set(self, namespace: str, key: str, value: Optional[str]) -> None:
        self._entries[(namespace, key)] = value

    def get_or_load(self, namespace: str, key: str, loader: Loader) -> Optional[str]:
        cached = self.get(namespace, key)
        if cached is not _MISSING:
            return cached
        self.lookups += 1
        value = loader()
        self.set(namespace, key, value)
        return value


def normalize_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def find_manual_match(manual_matches: Optional[Dict[str, str]], keys: Iterable[Optional[str]]) -> Optional[str]:
    """Return the override for the first key the operator supplied one for."""
    if not manual_matches:
        return None
    lowered = {normalize_key(key): value for key, value in manual_matches.items()}
    for key in keys:
        if not key:
            continue
        if key in manual_matches and manual_matches[key]:
            return manual_matches[key]
        match = lowered.get(normalize_key(key))
        if match:
            return match
    return None


def resolve_reference(
    cache: ResolutionCache,
    category: str,
    identifier: str,
    strategies: Sequence[Tuple[str, Loader]],
    *,
    manual_matches: Optional[Dict[str, str]] = None,
    manual_keys: Sequence[Optional[str]] = (),
    verify_manual: Optional[Callable[[str], bool]] = None,
    message: Optional[str] = None,
) -> str:
    """
    Resolve one reference to a record id.

    Args:
        cache: Run-scoped cache shared by all rows
        category: Kind of record being looked up (used in errors and cache keys)
        identifier: Human-readable form of the reference, for error messages
        strategies: (cache key, loader) pairs tried in order; a falsy key is skipped
        manual_matches: Operator overrides, identifier -> record id
        manual_keys: Keys under which an override for this row may be filed
        verify_manual: Optional check that an override points at a real record
        message: Error message used when nothing matches

    Raises:
        UnresolvedReferenceError: If no override or strategy yields a match
    """
    override = find_manual_match(manual_matches, manual_keys)
    if override:
        valid = cache.get_or_load(
            f"{category}:manual",
            override,
            lambda: override if verify_manual is None or verify_manual(override) else None,
        )
        if valid:
            return valid
        logger.debug("Manual match %s for %s %s does not exist; falling back", override, category, identifier)

    for index, (key, loader) in enumerate(strategies):
        if not key:
            continue
        found = cache.get_or_load(f"{category}:{index}", key, loader)
        if found:
            return found

    raise UnresolvedReferenceError(category, identifier, message)


def email_variants(email: Optional[str]) -> List[str]:
    """
    Expand an email into the lookup keys used for cross-format matching.

    For "Jane.Doe+hr@acme.io" this yields the full address, the address
    without alias, the address with punctuation removed from the local part,
    and the local part with and without alias, dots and punctuation.
    """
    lower = normalize_key(email)
    if not lower:
        return []
    local, _, domain = lower.partition("@")
    no_alias = re.sub(r"\+.*$", "", local)
    no_dots = local.replace(".", "")
    compressed = re.sub(r"[^a-z0-9]", "", no_alias)

    keys = [lower]
    if domain:
        keys.append(f"{no_alias}@{domain}")
        if compressed:
            keys.append(f"{compressed}@{domain}")
    keys.extend([local, no_alias, no_dots, compressed])

    seen = set()
    ordered = []
    for key in keys:
        if key and key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


class EmailIndex:
    """
    Fuzzy email lookup over a fixed set of (record id, email) pairs.

    Every variant of every known email is indexed. A variant shared by two
    different records is marked ambiguous and never resolves on its own.
    """

    def __init__(self, entries: Iterable[Tuple[str, str]] = ()):
        self._index: Dict[str, Optional[str]] = {}
        for record_id, email in entries:
            self.add(record_id, email)

    def add(self, record_id: str, email: str) -> None:
        for key in email_variants(email):
            if key not in self._index:
                self._index[key] = record_id
            elif self._index[key] not in (None, record_id):
                self._index[key] = None

    def lookup(self, email: str) -> Optional[str]:
        """
        Return the record matched by the most specific unambiguous variant.

        Variants are tried from the full address down to the bare local
        part. Variants shared by several records are passed over.

        Raises:
            AmbiguousReferenceError: If no variant matched and at least one was
                shared by several records
        """
        ambiguous_key = None
        for key in email_variants(email):
            if key not in self._index:
                continue
            record_id = self._index[key]
            if record_id is None:
                ambiguous_key = ambiguous_key or key
                continue
            return record_id
        if ambiguous_key is not None:
            raise AmbiguousReferenceError(
                "employee",
                email,
                f'Multiple employees match the identifier "{ambiguous_key}". '
                "Please update the import file with the exact work email for those rows.",
            )
        return None

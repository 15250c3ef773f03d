"""Custom vocabulary used to bias streaming recognition."""

from typing import Iterable, List, Optional, Protocol

from .settings import Settings, get_settings


class VocabularyStore(Protocol):
    def list(self) -> List[str]: ...


def normalize_vocabulary_terms(
    terms: Iterable[str], limit: Optional[int] = None
) -> List[str]:
    """
    Clean a vocabulary list for sending to a provider.

    Whitespace is trimmed and empty entries dropped. Duplicates are removed
    case-insensitively, keeping the first spelling seen and the original order.

    Args:
        terms: Raw vocabulary terms
        limit: Maximum number of terms to keep (None for no limit)

    Returns:
        Deduplicated terms, truncated to ``limit``
    """
    seen = set()
    unique: List[str] = []
    for term in terms:
        word = term.strip()
        if not word:
            continue
        key = word.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(word)

    if limit is not None:
        return unique[:limit]
    return unique


class SettingsVocabularyStore:

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings

    def list(self) -> List[str]:
        settings = self._settings if self._settings is not None else get_settings()
        return list(settings.vocabulary_terms)

"""
Message digest: optional template lookup and token substitution.

A message is looked up in a catalog under a short normalised key, first
qualified by its source and then on its own. When no template exists the
raw message is used. Either way `{token}` placeholders are filled in.

    catalog = MessageCatalog({"Importer.StartingImport": "Importing {count} rows"})
    digest("starting import", "importer", {"count": 3}, catalog)
    # → "Importing 3 rows"
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import yaml


KEY_LENGTH = 20

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

# (key, fallback, tokens) -> text
Translator = Callable[[str, str, Mapping[str, Any]], str]


def normalise_key(text: str) -> str:
    """First 20 characters, words capitalised, spaces removed."""
    head = text[:KEY_LENGTH]
    return "".join(word[:1].upper() + word[1:] for word in head.split(" "))


def substitute(text: str, tokens: Mapping[str, Any] | None) -> str:
    """Replace `{name}` placeholders present in tokens. Unknown ones stay."""
    if not tokens:
        return text

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name in tokens:
            return str(tokens[name])
        return match.group(0)

    return _PLACEHOLDER.sub(_replace, text)


class MessageCatalog:
    """
    Dict-backed template lookup.

    Entries map keys ("Source.Key" or "Key") to templates. Calling the
    catalog has the translator signature, so it can be passed anywhere a
    plain function is accepted.
    """

    def __init__(self, entries: Mapping[str, str] | None = None):
        self._entries: dict[str, str] = dict(entries or {})

    def add(self, key: str, template: str) -> None:
        self._entries[key] = template

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def translate(self, key: str, fallback: str, tokens: Mapping[str, Any] | None = None) -> str:
        template = self._entries.get(key)
        return substitute(template if template is not None else fallback, tokens)

    __call__ = translate

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @classmethod
    def from_yaml(cls, path: str | Path) -> "MessageCatalog":
        """
        Load a catalog from YAML. Nested mappings are flattened with dots:

            Importer:
              StartingImport: "Importing {count} rows"
        """
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        return cls(_flatten(data))


def digest(
    message: str,
    source: str,
    tokens: Mapping[str, Any] | None = None,
    catalog: MessageCatalog | Translator | None = None,
) -> str:
    """
    Look up `<Source>.<Key>`, then `<Key>`, then fall back to the message
    itself, substituting tokens into whichever text wins.
    """
    message = str(message)
    tokens = tokens or {}
    if catalog is None:
        return substitute(message, tokens)

    key = normalise_key(message)
    qualified = f"{normalise_key(source or '')}.{key}"
    unqualified = catalog(key, message, tokens)
    return catalog(qualified, unqualified, tokens)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in data.items():
        full = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, full))
        else:
            flat[full] = str(value)
    return flat

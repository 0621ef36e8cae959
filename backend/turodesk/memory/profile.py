"""
User profile summary - canonical fact keys and sentence templates.

A user's known facts are folded into one document: an ordered map of
canonical key -> sentence. The document text is those sentences joined in
insertion order.
"""

import re
import unicodedata
from typing import Dict

# alias -> canonical key (aliases are compared after normalization)
KEY_ALIASES: Dict[str, str] = {
    "nome": "name",
    "first_name": "name",
    "full_name": "name",
    "user_name": "name",
    "nome_do_usuario": "name",
    "apelido": "nickname",
    "idioma": "language",
    "lingua": "language",
    "lang": "language",
    "preferred_language": "language",
    "tema": "theme",
    "ui_theme": "theme",
    "cidade": "city",
    "location": "city",
    "localizacao": "city",
    "pais": "country",
    "profissao": "occupation",
    "job": "occupation",
    "profession": "occupation",
    "trabalho": "occupation",
    "ocupacao": "occupation",
    "idade": "age",
    "fuso_horario": "timezone",
    "time_zone": "timezone",
    "tz": "timezone",
    "aniversario": "birthday",
    "birth_date": "birthday",
    "data_de_nascimento": "birthday",
}

FACT_TEMPLATES: Dict[str, str] = {
    "name": "The user's name is {value}.",
    "nickname": "The user likes to be called {value}.",
    "language": "The user prefers to communicate in {value}.",
    "theme": "The user prefers the {value} theme.",
    "city": "The user lives in {value}.",
    "country": "The user is from {value}.",
    "occupation": "The user works as {value}.",
    "age": "The user is {value} years old.",
    "timezone": "The user's timezone is {value}.",
    "birthday": "The user's birthday is {value}.",
}

DEFAULT_TEMPLATE = "The user's {label} is {value}."

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def canonicalize_key(key: str) -> str:
    """
    Normalize a free-text fact key.

    Accents are stripped, case is folded and runs of anything that is not a
    letter or digit become a single underscore; known aliases then map to
    their canonical key ("Nome" -> "name", "first name" -> "name").

    Raises:
        ValueError: If nothing usable is left of the key
    """
    decomposed = unicodedata.normalize("NFKD", key or "")
    ascii_key = "".join(c for c in decomposed if not unicodedata.combining(c))
    normalized = _NON_ALNUM.sub("_", ascii_key.lower()).strip("_")
    if not normalized:
        raise ValueError(f"Invalid fact key: {key!r}")
    return KEY_ALIASES.get(normalized, normalized)


def _reads_as_sentence(text: str) -> bool:
    return text[-1] in ".!?" or len(text.split()) >= 4


def render_fact_sentence(key: str, content: str) -> str:
    """
    Turn a fact into one sentence of the summary.

    Content that already reads as a sentence is kept as written (a final
    period is added when missing). A bare value is rendered through the
    template of its canonical key.
    """
    text = " ".join((content or "").split())
    if not text:
        raise ValueError("Fact content must not be empty")

    if _reads_as_sentence(text):
        return text if text[-1] in ".!?" else text + "."

    canonical = canonicalize_key(key)
    template = FACT_TEMPLATES.get(canonical, DEFAULT_TEMPLATE)
    return template.format(label=canonical.replace("_", " "), value=text)


def merge_fact(facts: Dict[str, str], key: str, sentence: str) -> Dict[str, str]:
    """Return a copy with ``key`` set; an existing key keeps its position."""
    merged = dict(facts)
    merged[key] = sentence
    return merged


def remove_fact(facts: Dict[str, str], key: str) -> Dict[str, str]:
    return {k: v for k, v in facts.items() if k != key}


def summary_text(facts: Dict[str, str]) -> str:
    return " ".join(facts.values())

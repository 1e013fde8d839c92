"""
Heuristiques pour identifier le nom et le document d'une partie dans une ligne de données.

Objectif: à partir de la première ligne de la requête principale, repérer
- un champ "primaire" (nom / raison sociale) par score;
- un champ "secondaire" (CPF / CNPJ) par motif, premier trouvé.

Métadonnée indicative uniquement: ne doit jamais bloquer la génération ni lever d'exception.
"""

import re
from collections.abc import Mapping
from typing import Any

from backend.domain.entities import FieldIdentifiers

# CPF formaté, CNPJ formaté, ou variante uniquement numérique (11 ou 14 chiffres)
DOCUMENT_PATTERN = re.compile(
    r"^(?:\d{3}\.\d{3}\.\d{3}-\d{2}|\d{2}\.\d{3}\.\d{3}/\d{4}-\d{2}|\d{11}|\d{14})$"
)
PRIMARY_KEYWORDS = ("nome", "razao", "razaosocial", "empresa", "cedente", "fantasia")
LEGAL_SUFFIX_PATTERN = re.compile(r"\b(?:ltda|me|eireli|s/a|ss|ei|empresa)\b", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s")

MIN_TOKENS = 2
MIN_LABEL_LEN = 6
MAX_LABEL_LEN = 99


def is_document_number(value: str) -> bool:
    """Vrai si la valeur (espaces retirés) a la forme d'un CPF ou CNPJ."""
    return bool(DOCUMENT_PATTERN.match(_WHITESPACE.sub("", value)))


def score_primary(key: str, value: str) -> int:
    """Score d'un champ texte comme candidat nom / raison sociale.

    - +3 si le nom du champ contient un mot-clé (nome, razao, empresa...)
    - +2 si la valeur contient une forme juridique (ltda, me, eireli, s/a...)
    - +1 si la valeur compte au moins deux mots
    - +1 si la longueur est entre 6 et 99 caractères
    """
    score = 0
    lowered_key = key.lower()
    if any(word in lowered_key for word in PRIMARY_KEYWORDS):
        score += 3
    if LEGAL_SUFFIX_PATTERN.search(value):
        score += 2
    if len(value.split()) >= MIN_TOKENS:
        score += 1
    if MIN_LABEL_LEN <= len(value) <= MAX_LABEL_LEN:
        score += 1
    return score


def identify_fields(row: Mapping[str, Any] | None) -> FieldIdentifiers:
    """Identifie les champs primaire et secondaire d'une ligne (valeurs en minuscules).

    Le meilleur score strict l'emporte; à égalité, le premier champ rencontré est conservé.
    """
    if not row or not isinstance(row, Mapping):
        return FieldIdentifiers()
    primary: str | None = None
    secondary: str | None = None
    best = 0
    for key, value in row.items():
        if not isinstance(value, str):
            continue
        if secondary is None and is_document_number(value):
            secondary = value.lower()
        score = score_primary(str(key), value)
        if score > best:
            best = score
            primary = value.lower()
    return FieldIdentifiers(primary=primary, secondary=secondary)


def identify_from_rows(rows: list[dict[str, Any]] | None) -> FieldIdentifiers:
    """Applique `identify_fields` à la première ligne d'un résultat (vide toléré)."""
    if not rows:
        return FieldIdentifiers()
    return identify_fields(rows[0])

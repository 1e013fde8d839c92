"""
Normalisation des paramètres et empreinte des contrats.

L'empreinte identifie un contrat par (modèle, paramètres) indépendamment de la forme des
paramètres: ordre des clés, présence de valeurs vides, représentation des dates.

Règles de normalisation:
- valeurs `None` et chaînes vides retirées;
- clés triées lexicographiquement;
- dates (`date`, `datetime` ou chaîne reconnue comme date) réécrites en horodatage ISO-8601 UTC
  au format `YYYY-MM-DDTHH:MM:SS.mmmZ`;
- toute autre valeur conservée telle quelle (une chaîne non-date n'est jamais convertie).
"""

from __future__ import annotations

import hashlib
import json
import re
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

# Formats locaux acceptés en plus de l'ISO (jour avant mois)
LOCALE_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d-%m-%Y",
    "%d.%m.%Y",
)

_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}(?:[T ].+)?$")
_LOCALE_PREFIX = re.compile(r"^\d{1,2}[/.-]\d{1,2}[/.-]\d{4}(?: .+)?$")


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _iso_timestamp(value: date | datetime) -> str:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=UTC)
    value = _to_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_date(value: str) -> datetime | None:
    """Interprète une chaîne comme date calendaire, ou retourne None.

    Seules les formes non ambiguës sont tentées (ISO `AAAA-MM-JJ...` ou `JJ/MM/AAAA`);
    un identifiant numérique ou un texte libre n'est jamais pris pour une date.
    """
    text = value.strip()
    if _ISO_PREFIX.match(text):
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if _LOCALE_PREFIX.match(text):
        for fmt in LOCALE_DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    return None


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def normalize_value(value: Any) -> Any:
    """Forme canonique d'une valeur scalaire.

    Une date hors de la plage représentable en UTC (ex: an 1 avec un décalage positif)
    est conservée telle quelle, comme une chaîne qui n'est pas une date.
    """
    try:
        if isinstance(value, date):
            return _iso_timestamp(value)
        if isinstance(value, str):
            parsed = parse_date(value)
            if parsed is not None:
                return _iso_timestamp(parsed)
    except OverflowError:
        return value
    return value


def normalize_parameters(parameters: Mapping[str, Any] | None) -> dict[str, Any]:
    """Retourne les paramètres retenus, triés par clé et normalisés."""
    retained = ((k, v) for k, v in (parameters or {}).items() if not _is_blank(v))
    return {key: normalize_value(value) for key, value in sorted(retained)}


def canonical_payload(model_id: str, parameters: Mapping[str, Any] | None) -> str:
    """Sérialisation canonique `{modelId, parameters}` servant d'entrée au digest."""
    return json.dumps(
        {"modelId": model_id, "parameters": normalize_parameters(parameters)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def fingerprint(model_id: str, parameters: Mapping[str, Any] | None) -> str:
    """Empreinte hexadécimale (32 caractères) d'un modèle et de ses paramètres.

    Le digest n'a pas de rôle de sécurité: il sert de clé de réutilisation/versionnement.
    """
    payload = canonical_payload(model_id, parameters).encode("utf-8")
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()


def _calendar_day(value: Any) -> str | None:
    try:
        if isinstance(value, date):
            return _iso_timestamp(value)[:10]
        if isinstance(value, str):
            parsed = parse_date(value)
            if parsed is not None:
                return _iso_timestamp(parsed)[:10]
    except OverflowError:
        return None
    return None


def parameters_equivalent(
    stored: Mapping[str, Any] | None, candidate: Mapping[str, Any] | None
) -> bool:
    """Compare deux jeux de paramètres de façon tolérante.

    Mêmes clés retenues; les dates sont comparées au jour près, le reste en chaîne.
    """
    left = {k: v for k, v in (stored or {}).items() if not _is_blank(v)}
    right = {k: v for k, v in (candidate or {}).items() if not _is_blank(v)}
    if left.keys() != right.keys():
        return False
    for key, value in left.items():
        other = right[key]
        day_a, day_b = _calendar_day(value), _calendar_day(other)
        if day_a is not None and day_b is not None:
            if day_a != day_b:
                return False
        elif str(value) != str(other):
            return False
    return True

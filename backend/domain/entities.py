"""
Entités du domaine métier.

Ce module définit les modèles de données manipulés par le moteur de génération: modèles de
documents (template + requêtes), contrats générés (artefacts versionnés) et données extraites.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

VariableKind = Literal["simple", "list", "table"]

# Valeur scalaire acceptée comme paramètre de requête
ParamValue = str | int | float | bool | date | datetime | None
Parameters = dict[str, ParamValue]


class Variable(BaseModel):
    """Sous-requête nommée dont les lignes sont exposées au template sous `name`."""

    name: str
    kind: VariableKind = "simple"
    fields: list[str] = Field(default_factory=list)
    query: str = ""


class DocumentModel(BaseModel):
    """Modèle de document: template binaire, requête principale et variables."""

    id: str
    title: str
    type: str
    description: str
    template_path: str
    main_query: str
    variables: list[Variable] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class FieldIdentifiers(BaseModel):
    """Libellés indicatifs extraits des données (nom / document)."""

    primary: str | None = None
    secondary: str | None = None


class ContractData(BaseModel):
    """Résultat brut des requêtes d'un modèle."""

    principal: list[dict[str, Any]] = Field(default_factory=list)
    variables: dict[str, list[dict[str, Any]]] = Field(default_factory=dict)


class Artifact(BaseModel):
    """Contrat généré, versionné par (model_id, fingerprint).

    Immuable après écriture, sauf `active` qui passe une seule fois de True à False.
    """

    id: int | None = None
    model_id: str
    parameters: dict[str, Any]
    fingerprint: str
    version: int
    active: bool = True
    generated_at: datetime
    output_path: str
    data: ContractData | None = None
    field_identifiers: FieldIdentifiers | None = None

from __future__ import annotations
from enum import Enum as PyEnum
from typing import FrozenSet, List, Literal


class SoilType(str, PyEnum):
    argiloso = "argiloso"
    arenoso = "arenoso"
    rochoso = "rochoso"
    misturado = "misturado"
    outro = "outro"


class AccessType(str, PyEnum):
    livre = "livre"
    limitado = "limitado"
    restrito = "restrito"


class JobStatus(str, PyEnum):
    pendente = "pendente"
    em_execucao = "em_execucao"
    concluida = "concluida"
    cancelada = "cancelada"


class BudgetStatus(str, PyEnum):
    pendente = "pendente"
    aprovado = "aprovado"
    rejeitado = "rejeitado"
    convertido = "convertido"


class TeamStatus(str, PyEnum):
    ativa = "ativa"
    inativa = "inativa"


class TravelPricingType(str, PyEnum):
    per_km = "per_km"
    fixed = "fixed"


# Only these occupy a team's calendar; finished/cancelled jobs never block a slot.
ACTIVE_JOB_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.pendente, JobStatus.em_execucao})

# Catalog diameters in cm. No interpolation between entries.
CATALOG_DIAMETERS: List[int] = list(range(25, 121, 5))

LineStatus = Literal["complete", "manual", "incomplete"]

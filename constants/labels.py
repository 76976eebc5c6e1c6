from __future__ import annotations
from typing import Dict

from .types import AccessType, SoilType

# Keys are lower-cased and stripped. Form labels, stored values and the
# accent-less spellings operators type by hand all land here.
SOIL_TYPE_SYNONYMS: Dict[str, SoilType] = {
    "argiloso": SoilType.argiloso,
    "arenoso": SoilType.arenoso,
    "rochoso": SoilType.rochoso,
    "misturado": SoilType.misturado,
    "terra comum": SoilType.misturado,
    "terra_comum": SoilType.misturado,
    "outro": SoilType.outro,
    "não sei informar": SoilType.outro,
    "nao sei informar": SoilType.outro,
}

ACCESS_SYNONYMS: Dict[str, AccessType] = {
    "livre": AccessType.livre,
    "facil": AccessType.livre,
    "fácil": AccessType.livre,
    "acesso livre e desimpedido": AccessType.livre,
    "limitado": AccessType.limitado,
    "medio": AccessType.limitado,
    "médio": AccessType.limitado,
    "algumas limitações": AccessType.limitado,
    "algumas limitacoes": AccessType.limitado,
    "restrito": AccessType.restrito,
    "dificil": AccessType.restrito,
    "difícil": AccessType.restrito,
    "acesso restrito ou complicado": AccessType.restrito,
}

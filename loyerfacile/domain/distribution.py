from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from .deposit import ADVANCE_MONTHS, AGENCY_MONTHS, GUARANTEE_MONTHS

PENDING = "en_attente"
NOT_APPLICABLE = "non_applicable"


@dataclass(frozen=True)
class DistributionSplit:
    type_distribution: str  # caution | loyer
    montant_total: float
    montant_proprietaire: float
    montant_gestionnaire: float
    montant_demarcheur: float
    statut_proprietaire: str
    statut_gestionnaire: str
    statut_demarcheur: str
    detail: Optional[dict[str, float]] = field(default=None)


def compute_distribution(
    *,
    montant: float,
    montant_mensuel: float,
    caution_montant: float,
    config: Any,
) -> DistributionSplit:
    """
    Split a payment between owner, manager and agent.

    The deposit is recognised by amount: advance months are shared by the
    configured percentages, the guarantee stays with the manager and the
    agency month goes to the agent.
    """
    total = float(montant)
    rent = float(montant_mensuel)
    owner_pct = float(config.proprietaire_pourcentage) / 100.0
    manager_pct = float(config.gestionnaire_pourcentage) / 100.0

    if caution_montant and total == float(caution_montant):
        advance = rent * ADVANCE_MONTHS
        guarantee = rent * GUARANTEE_MONTHS
        agent = rent * AGENCY_MONTHS
        owner_advance = advance * owner_pct
        manager_advance = advance * manager_pct
        return DistributionSplit(
            type_distribution="caution",
            montant_total=total,
            montant_proprietaire=float(owner_advance),
            montant_gestionnaire=float(manager_advance + guarantee),
            montant_demarcheur=float(agent),
            statut_proprietaire=PENDING,
            statut_gestionnaire=PENDING,
            statut_demarcheur=PENDING if getattr(config, "demarcheur_telephone", None) else NOT_APPLICABLE,
            detail={
                "avance_2_mois": float(advance),
                "part_proprietaire_avance": float(owner_advance),
                "part_gestionnaire_avance": float(manager_advance),
                "garantie_2_mois": float(guarantee),
                "demarcheur_1_mois": float(agent),
            },
        )

    return DistributionSplit(
        type_distribution="loyer",
        montant_total=total,
        montant_proprietaire=float(total * owner_pct),
        montant_gestionnaire=float(total * manager_pct),
        montant_demarcheur=0.0,
        statut_proprietaire=PENDING,
        statut_gestionnaire=PENDING,
        statut_demarcheur=NOT_APPLICABLE,
    )

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write
from ..domain.distribution import compute_distribution
from ..models import Lease, Payment, PaymentDistribution, PaymentDistributionConfig

log = logging.getLogger("loyerfacile.distribution")


@dataclass(frozen=True)
class DistributionResult:
    success: bool
    distribution: Optional[PaymentDistribution] = None
    error: Optional[str] = None


def get_config(db: Session, space_id: int) -> Optional[PaymentDistributionConfig]:
    return db.scalar(select(PaymentDistributionConfig).where(PaymentDistributionConfig.space_id == space_id))


def distribute_payment(db: Session, payment_id: int, *, actor_user_id: Optional[int] = None) -> DistributionResult:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise LookupError("payment not found")
    lease = db.get(Lease, payment.lease_id)
    if lease is None:
        raise LookupError("lease not found")

    config = get_config(db, payment.space_id)
    if config is None:
        log.info("no distribution config for space %s", payment.space_id, extra={"payment_id": payment.id})
        return DistributionResult(
            success=False,
            error="Configuration de distribution non trouvée. Veuillez configurer les comptes de distribution.",
        )

    split = compute_distribution(
        montant=payment.montant,
        montant_mensuel=lease.montant_mensuel,
        caution_montant=lease.caution_montant,
        config=config,
    )
    row = PaymentDistribution(
        space_id=payment.space_id,
        payment_id=payment.id,
        type_distribution=split.type_distribution,
        montant_total=split.montant_total,
        montant_proprietaire=split.montant_proprietaire,
        montant_gestionnaire=split.montant_gestionnaire,
        montant_demarcheur=split.montant_demarcheur,
        statut_proprietaire=split.statut_proprietaire,
        statut_gestionnaire=split.statut_gestionnaire,
        statut_demarcheur=split.statut_demarcheur,
        detail_json=split.detail,
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        space_id=payment.space_id,
        actor_user_id=actor_user_id,
        action="payment.distributed",
        entity_type="PaymentDistribution",
        entity_id=str(row.id),
        after=row.model_dump(),
    )
    db.commit()
    db.refresh(row)
    log.info("payment distributed (%s)", split.type_distribution, extra={"payment_id": payment.id})
    return DistributionResult(success=True, distribution=row)

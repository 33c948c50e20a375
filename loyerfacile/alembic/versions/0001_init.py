"""init schema

Revision ID: 0001_init
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # -------------------------
    # Spaces / users / audit
    # -------------------------
    op.create_table(
        "management_spaces",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("slug", sa.String(length=80), nullable=False),
        sa.Column("nom", sa.String(length=160), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_management_spaces_slug", "management_spaces", ["slug"], unique=True)

    op.create_table(
        "app_users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=200), nullable=False),
        sa.Column("full_name", sa.String(length=160), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_app_users_email", "app_users", ["email"], unique=True)

    op.create_table(
        "space_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="manager"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("space_id", "user_id", name="uq_space_members_space_user"),
    )
    op.create_index("ix_space_members_space_id", "space_members", ["space_id"])
    op.create_index("ix_space_members_user_id", "space_members", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("action", sa.String(length=80), nullable=False),
        sa.Column("entity_type", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("before_json", sa.Text(), nullable=True),
        sa.Column("after_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_space_id", "audit_events", ["space_id"])

    # -------------------------
    # Listings / leases
    # -------------------------
    op.create_table(
        "properties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("gestionnaire_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("titre", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("adresse", sa.String(length=255), nullable=False),
        sa.Column("ville", sa.String(length=120), nullable=False),
        sa.Column("quartier", sa.String(length=120), nullable=True),
        sa.Column("type_propriete", sa.String(length=60), nullable=False, server_default="appartement"),
        sa.Column("prix_mensuel", sa.Float(), nullable=False),
        sa.Column("caution", sa.Float(), nullable=True),
        sa.Column("nombre_pieces", sa.Integer(), nullable=True),
        sa.Column("surface", sa.Float(), nullable=True),
        sa.Column("statut", sa.String(length=40), nullable=False, server_default="available"),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_properties_space_id", "properties", ["space_id"])
    op.create_index("ix_properties_statut", "properties", ["statut"])

    op.create_table(
        "leases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("locataire_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("gestionnaire_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("date_debut", sa.Date(), nullable=False),
        sa.Column("date_fin", sa.Date(), nullable=True),
        sa.Column("montant_mensuel", sa.Float(), nullable=False),
        sa.Column("caution_montant", sa.Float(), nullable=False, server_default="0"),
        sa.Column("caution_payee", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("date_caution_payee", sa.DateTime(), nullable=True),
        sa.Column("statut", sa.String(length=40), nullable=False, server_default="pending-deposit"),
        sa.Column("payment_status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("advance_months_count", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("advance_months_consumed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("caution_months_count", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("agency_months_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("first_regular_payment_date", sa.Date(), nullable=True),
        sa.Column("receipt_url", sa.String(length=500), nullable=True),
        sa.Column("receipt_uploaded_at", sa.DateTime(), nullable=True),
        sa.Column("receipt_uploaded_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("tenant_confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("contrat_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_leases_space_id", "leases", ["space_id"])
    op.create_index("ix_leases_property_id", "leases", ["property_id"])
    op.create_index("ix_leases_locataire_id", "leases", ["locataire_id"])
    op.create_index("ix_leases_gestionnaire_id", "leases", ["gestionnaire_id"])
    op.create_index("ix_leases_statut", "leases", ["statut"])

    op.create_table(
        "rental_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id"), nullable=False),
        sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("proposed_start_date", sa.Date(), nullable=True),
        sa.Column("request_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rental_requests_space_id", "rental_requests", ["space_id"])
    op.create_index("ix_rental_requests_property_id", "rental_requests", ["property_id"])
    op.create_index("ix_rental_requests_tenant_id", "rental_requests", ["tenant_id"])
    op.create_index("ix_rental_requests_request_status", "rental_requests", ["request_status"])

    # -------------------------
    # Payments
    # -------------------------
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False),
        sa.Column("montant", sa.Float(), nullable=False),
        sa.Column("mois_paiement", sa.Date(), nullable=False),
        sa.Column("date_paiement", sa.DateTime(), nullable=True),
        sa.Column("statut", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("methode_paiement", sa.String(length=40), nullable=True),
        sa.Column("numero_telephone", sa.String(length=40), nullable=True),
        sa.Column("transaction_id", sa.String(length=120), nullable=True),
        sa.Column("recu_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payments_space_id", "payments", ["space_id"])
    op.create_index("ix_payments_lease_id", "payments", ["lease_id"])
    op.create_index("ix_payments_mois_paiement", "payments", ["mois_paiement"])
    op.create_index("ix_payments_statut", "payments", ["statut"])
    op.create_index("ix_payments_transaction_id", "payments", ["transaction_id"])

    op.create_table(
        "payment_distribution_config",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("proprietaire_pourcentage", sa.Float(), nullable=False, server_default="90"),
        sa.Column("gestionnaire_pourcentage", sa.Float(), nullable=False, server_default="10"),
        sa.Column("proprietaire_telephone", sa.String(length=40), nullable=True),
        sa.Column("proprietaire_operateur", sa.String(length=40), nullable=True),
        sa.Column("gestionnaire_telephone", sa.String(length=40), nullable=True),
        sa.Column("gestionnaire_operateur", sa.String(length=40), nullable=True),
        sa.Column("demarcheur_telephone", sa.String(length=40), nullable=True),
        sa.Column("demarcheur_operateur", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_payment_distribution_config_space_id", "payment_distribution_config", ["space_id"], unique=True
    )

    op.create_table(
        "payment_distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("payment_id", sa.Integer(), sa.ForeignKey("payments.id"), nullable=False),
        sa.Column("type_distribution", sa.String(length=20), nullable=False),
        sa.Column("montant_total", sa.Float(), nullable=False),
        sa.Column("montant_proprietaire", sa.Float(), nullable=False, server_default="0"),
        sa.Column("montant_gestionnaire", sa.Float(), nullable=False, server_default="0"),
        sa.Column("montant_demarcheur", sa.Float(), nullable=False, server_default="0"),
        sa.Column("statut_proprietaire", sa.String(length=20), nullable=False, server_default="en_attente"),
        sa.Column("statut_gestionnaire", sa.String(length=20), nullable=False, server_default="en_attente"),
        sa.Column("statut_demarcheur", sa.String(length=20), nullable=False, server_default="non_applicable"),
        sa.Column("detail_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_distributions_space_id", "payment_distributions", ["space_id"])
    op.create_index("ix_payment_distributions_payment_id", "payment_distributions", ["payment_id"])

    op.create_table(
        "lease_payment_reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False),
        sa.Column("reminder_type", sa.String(length=40), nullable=False),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("lease_id", "reminder_type", "reminder_date", name="uq_lease_reminders_lease_type_date"),
    )
    op.create_index("ix_lease_payment_reminders_lease_id", "lease_payment_reminders", ["lease_id"])

    # -------------------------
    # Finance
    # -------------------------
    op.create_table(
        "property_charges",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type_charge", sa.String(length=60), nullable=False, server_default="autre"),
        sa.Column("montant", sa.Float(), nullable=False),
        sa.Column("date_charge", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("recurrent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("frequence", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_property_charges_space_id", "property_charges", ["space_id"])
    op.create_index("ix_property_charges_property_id", "property_charges", ["property_id"])
    op.create_index("ix_property_charges_date_charge", "property_charges", ["date_charge"])

    op.create_table(
        "property_amortization",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("property_id", sa.Integer(), sa.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False),
        sa.Column("valeur_acquisition", sa.Float(), nullable=False),
        sa.Column("date_acquisition", sa.Date(), nullable=False),
        sa.Column("duree_amortissement", sa.Integer(), nullable=False),
        sa.Column("valeur_residuelle", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_property_amortization_space_id", "property_amortization", ["space_id"])
    op.create_index("ix_property_amortization_property_id", "property_amortization", ["property_id"])

    # -------------------------
    # Maintenance / notifications
    # -------------------------
    op.create_table(
        "maintenance_tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("space_id", sa.Integer(), sa.ForeignKey("management_spaces.id"), nullable=False),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("titre", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("statut", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("priorite", sa.String(length=20), nullable=False, server_default="medium"),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_maintenance_tickets_space_id", "maintenance_tickets", ["space_id"])
    op.create_index("ix_maintenance_tickets_lease_id", "maintenance_tickets", ["lease_id"])
    op.create_index("ix_maintenance_tickets_statut", "maintenance_tickets", ["statut"])

    op.create_table(
        "maintenance_interventions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "ticket_id", sa.Integer(), sa.ForeignKey("maintenance_tickets.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("intervenant_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("statut_avant", sa.String(length=20), nullable=True),
        sa.Column("statut_apres", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_maintenance_interventions_ticket_id", "maintenance_interventions", ["ticket_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("app_users.id"), nullable=False),
        sa.Column("lease_id", sa.Integer(), sa.ForeignKey("leases.id"), nullable=True),
        sa.Column("type", sa.String(length=60), nullable=False),
        sa.Column("titre", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("lu", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_lease_id", "notifications", ["lease_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])


def downgrade():
    for table in (
        "notifications",
        "maintenance_interventions",
        "maintenance_tickets",
        "property_amortization",
        "property_charges",
        "lease_payment_reminders",
        "payment_distributions",
        "payment_distribution_config",
        "payments",
        "rental_requests",
        "leases",
        "properties",
        "audit_events",
        "space_members",
        "app_users",
        "management_spaces",
    ):
        op.drop_table(table)

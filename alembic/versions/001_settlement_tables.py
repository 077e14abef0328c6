"""001 - Clinic billing and settlement tables

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        )
    ]
    if with_updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    # Audit logs
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger(), nullable=False),
        sa.Column("entity_identifier", sa.String(200), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    # Fiscal receipt counters
    op.create_table(
        "fiscal_receipt_sequences",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("prefix", sa.String(20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("last_number", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("prefix", "year", name="uq_fiscal_receipt_sequence_prefix_year"),
    )

    # Patient books, appointments, encounters
    op.create_table(
        "patient_books",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("patient_id", sa.BigInteger(), nullable=False),
        sa.Column("book_number", sa.String(50), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_patient_books_patient_id", "patient_books", ["patient_id"])
    op.create_index("ix_patient_books_book_number", "patient_books", ["book_number"], unique=True)

    op.create_table(
        "appointments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("branch_id", sa.BigInteger(), nullable=True),
        sa.Column("patient_id", sa.BigInteger(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="booked"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_branch_id", "appointments", ["branch_id"])
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_status", "appointments", ["status"])

    op.create_table(
        "encounters",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("patient_book_id", sa.BigInteger(), nullable=False),
        sa.Column("appointment_id", sa.BigInteger(), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["patient_book_id"], ["patient_books.id"]),
        sa.ForeignKeyConstraint(["appointment_id"], ["appointments.id"]),
    )
    op.create_index("ix_encounters_patient_book_id", "encounters", ["patient_book_id"])
    op.create_index("ix_encounters_appointment_id", "encounters", ["appointment_id"])

    op.create_table(
        "sterilization_mismatches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("encounter_id", sa.BigInteger(), nullable=False),
        sa.Column("tool_name", sa.String(200), nullable=True),
        sa.Column("cycle_code", sa.String(50), nullable=True),
        sa.Column("requested_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("available_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="UNRESOLVED"),
        *_timestamps(with_updated=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["encounter_id"], ["encounters.id"]),
    )
    op.create_index(
        "ix_sterilization_mismatches_encounter_id", "sterilization_mismatches", ["encounter_id"]
    )
    op.create_index("ix_sterilization_mismatches_status", "sterilization_mismatches", ["status"])

    # Invoices
    op.create_table(
        "invoices",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("branch_id", sa.BigInteger(), nullable=True),
        sa.Column("encounter_id", sa.BigInteger(), nullable=True),
        sa.Column("patient_id", sa.BigInteger(), nullable=True),
        sa.Column("buyer_type", sa.String(3), nullable=False, server_default="B2C"),
        sa.Column("buyer_tin", sa.String(14), nullable=True),
        sa.Column("total_before_discount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("discount_percent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "collection_discount_amount", sa.Numeric(15, 2), nullable=False, server_default="0"
        ),
        sa.Column("final_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("status_legacy", sa.String(20), nullable=False, server_default="unpaid"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["encounter_id"], ["encounters.id"]),
    )
    op.create_index("ix_invoices_branch_id", "invoices", ["branch_id"])
    op.create_index("ix_invoices_encounter_id", "invoices", ["encounter_id"], unique=True)
    op.create_index("ix_invoices_patient_id", "invoices", ["patient_id"])
    op.create_index("ix_invoices_status_legacy", "invoices", ["status_legacy"])

    op.create_table(
        "invoice_items",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=False),
        sa.Column("item_type", sa.String(10), nullable=False),
        sa.Column("service_id", sa.BigInteger(), nullable=True),
        sa.Column("product_id", sa.BigInteger(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False, server_default=""),
        sa.Column("unit_price", sa.Numeric(15, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("line_total", sa.Numeric(15, 2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])
    op.create_index("ix_invoice_items_product_id", "invoice_items", ["product_id"])

    op.create_table(
        "fiscal_receipts",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=False),
        sa.Column("receipt_number", sa.String(64), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.UniqueConstraint("receipt_number"),
    )
    op.create_index("ix_fiscal_receipts_invoice_id", "fiscal_receipts", ["invoice_id"], unique=True)

    # Payments
    op.create_table(
        "payments",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("method", sa.String(30), nullable=False),
        sa.Column("meta", postgresql.JSONB(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("qpay_txn_id", sa.String(100), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.UniqueConstraint("invoice_id", "qpay_txn_id", name="uq_payments_invoice_qpay_txn"),
    )
    op.create_index("ix_payments_invoice_id", "payments", ["invoice_id"])
    op.create_index("ix_payments_method", "payments", ["method"])
    op.create_index("ix_payments_qpay_txn_id", "payments", ["qpay_txn_id"])

    op.create_table(
        "payment_allocations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("invoice_item_id", sa.BigInteger(), nullable=False),
        sa.Column("payment_id", sa.BigInteger(), nullable=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_item_id"], ["invoice_items.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
    )
    op.create_index(
        "ix_payment_allocations_invoice_item_id", "payment_allocations", ["invoice_item_id"]
    )
    op.create_index("ix_payment_allocations_payment_id", "payment_allocations", ["payment_id"])

    # Employee benefits
    op.create_table(
        "employee_benefits",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("employee_id", sa.BigInteger(), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("initial_amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("remaining_amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("from_date", sa.Date(), nullable=True),
        sa.Column("to_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("remaining_amount >= 0", name="ck_employee_benefits_remaining_non_negative"),
    )
    op.create_index("ix_employee_benefits_employee_id", "employee_benefits", ["employee_id"])
    op.create_index("ix_employee_benefits_code", "employee_benefits", ["code"], unique=True)
    op.create_index("ix_employee_benefits_is_active", "employee_benefits", ["is_active"])

    op.create_table(
        "employee_benefit_usages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("employee_benefit_id", sa.BigInteger(), nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=False),
        sa.Column("encounter_id", sa.BigInteger(), nullable=True),
        sa.Column("payment_id", sa.BigInteger(), nullable=True),
        sa.Column("patient_id", sa.BigInteger(), nullable=True),
        sa.Column("patient_book_number", sa.String(50), nullable=True),
        sa.Column("amount_used", sa.Numeric(15, 2), nullable=False),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["employee_benefit_id"], ["employee_benefits.id"]),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["encounter_id"], ["encounters.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"]),
        sa.UniqueConstraint("payment_id"),
    )
    op.create_index(
        "ix_employee_benefit_usages_employee_benefit_id",
        "employee_benefit_usages",
        ["employee_benefit_id"],
    )
    op.create_index(
        "ix_employee_benefit_usages_invoice_id", "employee_benefit_usages", ["invoice_id"]
    )
    op.create_index(
        "ix_employee_benefit_usages_encounter_id", "employee_benefit_usages", ["encounter_id"]
    )

    # Stock movements
    op.create_table(
        "stock_movements",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("branch_id", sa.BigInteger(), nullable=False),
        sa.Column("product_id", sa.BigInteger(), nullable=False),
        sa.Column("movement_type", sa.String(20), nullable=False),
        sa.Column("quantity_delta", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.BigInteger(), nullable=True),
        sa.Column("invoice_item_id", sa.BigInteger(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(with_updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"]),
        sa.ForeignKeyConstraint(["invoice_item_id"], ["invoice_items.id"]),
        sa.UniqueConstraint(
            "invoice_item_id", "movement_type", name="uq_stock_movements_invoice_item_type"
        ),
    )
    op.create_index("ix_stock_movements_branch_id", "stock_movements", ["branch_id"])
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_movement_type", "stock_movements", ["movement_type"])
    op.create_index("ix_stock_movements_invoice_id", "stock_movements", ["invoice_id"])
    op.create_index("ix_stock_movements_created_at", "stock_movements", ["created_at"])


def downgrade() -> None:
    op.drop_table("stock_movements")
    op.drop_table("employee_benefit_usages")
    op.drop_table("employee_benefits")
    op.drop_table("payment_allocations")
    op.drop_table("payments")
    op.drop_table("fiscal_receipts")
    op.drop_table("invoice_items")
    op.drop_table("invoices")
    op.drop_table("sterilization_mismatches")
    op.drop_table("encounters")
    op.drop_table("appointments")
    op.drop_table("patient_books")
    op.drop_table("fiscal_receipt_sequences")
    op.drop_table("audit_logs")

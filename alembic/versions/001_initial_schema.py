"""001 – Initial schema: employees, leave types, requests, holidays, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17 10:00:00.000000+00:00
"""

from alembic import op

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
]


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code   VARCHAR(20)  NOT NULL UNIQUE,
            first_name      VARCHAR(100) NOT NULL,
            last_name       VARCHAR(100) NOT NULL,
            email           VARCHAR(255) NOT NULL UNIQUE,
            department      VARCHAR(150),
            designation     VARCHAR(150),
            date_of_joining DATE NOT NULL,
            manager_id      UUID REFERENCES employees(id),
            is_active       BOOLEAN DEFAULT TRUE,
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            updated_at      TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX idx_employees_manager ON employees(manager_id)")

    # ── 2. leave_types ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                  VARCHAR(100) NOT NULL UNIQUE,
            description           TEXT,
            default_days_per_year INTEGER NOT NULL DEFAULT 0,
            is_paid               BOOLEAN DEFAULT TRUE,
            requires_approval     BOOLEAN DEFAULT TRUE,
            max_consecutive_days  INTEGER NOT NULL,
            is_active             BOOLEAN DEFAULT TRUE,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_type_allotment CHECK (default_days_per_year >= 0),
            CONSTRAINT ck_leave_type_max_consecutive CHECK (max_consecutive_days >= 1)
        )
    """)

    # ── 3. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            leave_type_id    UUID NOT NULL REFERENCES leave_types(id) ON DELETE RESTRICT,
            start_date       DATE NOT NULL,
            end_date         DATE NOT NULL,
            reason           TEXT,
            is_emergency     BOOLEAN DEFAULT FALSE,
            status           leave_status NOT NULL DEFAULT 'pending',
            chargeable_days  INTEGER NOT NULL,
            applied_on       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            decided_by       UUID REFERENCES employees(id),
            decided_at       TIMESTAMPTZ,
            decision_remarks TEXT,
            version          INTEGER NOT NULL DEFAULT 1,
            updated_at       TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_request_range CHECK (start_date <= end_date),
            CONSTRAINT ck_leave_request_chargeable CHECK (chargeable_days >= 1)
        )
    """)
    op.execute("""
        CREATE INDEX ix_leave_requests_employee_dates
            ON leave_requests(employee_id, start_date, end_date)
    """)
    op.execute("CREATE INDEX ix_leave_requests_status ON leave_requests(status)")

    # ── 4. holidays ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE holidays (
            id         UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            date       DATE NOT NULL UNIQUE,
            name       VARCHAR(150) NOT NULL,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 5. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID,
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX ix_audit_trail_entity
            ON audit_trail(entity_type, entity_id)
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail(actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_action   ON audit_trail(action)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    tables = [
        "audit_trail",
        "holidays",
        "leave_requests",
        "leave_types",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')

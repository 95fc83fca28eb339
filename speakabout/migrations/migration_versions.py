"""
Versioned schema migrations.

Each Migration is applied once, in version order, inside its own
transaction. Never edit a migration that has shipped; add a new one.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    statements: Tuple[str, ...]

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"


def _updated_at_trigger(table: str) -> Tuple[str, ...]:
    """Statements keeping <table>.updated_at current on every UPDATE."""
    function = f"update_{table}_updated_at"
    return (
        f"""
        CREATE OR REPLACE FUNCTION {function}()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ language 'plpgsql'
        """,
        f"DROP TRIGGER IF EXISTS {function} ON {table}",
        f"""
        CREATE TRIGGER {function}
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION {function}()
        """,
    )


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        version="001",
        name="create_deals",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS deals (
                id SERIAL PRIMARY KEY,
                client_name VARCHAR(255) NOT NULL,
                client_email VARCHAR(255) NOT NULL,
                client_phone VARCHAR(50),
                company VARCHAR(255),
                event_title VARCHAR(255) NOT NULL,
                event_date DATE,
                event_location VARCHAR(255),
                event_type VARCHAR(100),
                speaker_requested VARCHAR(255),
                attendee_count INTEGER,
                budget_range VARCHAR(100),
                deal_value NUMERIC(12, 2),
                status VARCHAR(50) NOT NULL DEFAULT 'lead'
                    CHECK (status IN ('lead', 'qualified', 'proposal', 'negotiation', 'won', 'lost')),
                priority VARCHAR(20) NOT NULL DEFAULT 'medium'
                    CHECK (priority IN ('low', 'medium', 'high', 'urgent')),
                source VARCHAR(100),
                notes TEXT,
                additional_info TEXT,
                wishlist_speakers JSONB DEFAULT '[]'::jsonb,
                session_id VARCHAR(64),
                visitor_id VARCHAR(64),
                last_contact DATE,
                next_follow_up DATE,
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_deals_status ON deals(status)",
            "CREATE INDEX IF NOT EXISTS idx_deals_created_at ON deals(created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_deals_client_email ON deals(client_email)",
        ),
    ),
    Migration(
        version="002",
        name="deal_lifecycle_fields",
        statements=(
            """
            ALTER TABLE deals
            ADD COLUMN IF NOT EXISTS won_date TIMESTAMP WITH TIME ZONE,
            ADD COLUMN IF NOT EXISTS lost_date TIMESTAMP WITH TIME ZONE,
            ADD COLUMN IF NOT EXISTS lost_reason VARCHAR(255),
            ADD COLUMN IF NOT EXISTS lost_details TEXT,
            ADD COLUMN IF NOT EXISTS lost_competitor VARCHAR(255),
            ADD COLUMN IF NOT EXISTS worth_follow_up BOOLEAN DEFAULT false,
            ADD COLUMN IF NOT EXISTS follow_up_date DATE,
            ADD COLUMN IF NOT EXISTS closed_notes TEXT
            """,
        ),
    ),
    Migration(
        version="003",
        name="speaker_application_fields",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS speaker_applications (
                id SERIAL PRIMARY KEY,
                first_name VARCHAR(100) NOT NULL,
                last_name VARCHAR(100) NOT NULL,
                email VARCHAR(255) UNIQUE NOT NULL,
                status VARCHAR(50) DEFAULT 'pending'
                    CHECK (status IN ('pending', 'under_review', 'approved', 'rejected', 'invited')),
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            ALTER TABLE speaker_applications
            ADD COLUMN IF NOT EXISTS speaking_experience VARCHAR(50),
            ADD COLUMN IF NOT EXISTS notable_organizations TEXT,
            ADD COLUMN IF NOT EXISTS ai_expertise TEXT,
            ADD COLUMN IF NOT EXISTS unique_perspective TEXT,
            ADD COLUMN IF NOT EXISTS audience_size_preference VARCHAR(100),
            ADD COLUMN IF NOT EXISTS timezone VARCHAR(50),
            ADD COLUMN IF NOT EXISTS headshot_url VARCHAR(500),
            ADD COLUMN IF NOT EXISTS short_bio TEXT,
            ADD COLUMN IF NOT EXISTS achievements TEXT,
            ADD COLUMN IF NOT EXISTS education TEXT,
            ADD COLUMN IF NOT EXISTS certifications TEXT,
            ADD COLUMN IF NOT EXISTS signature_talks TEXT,
            ADD COLUMN IF NOT EXISTS industries_experience TEXT[],
            ADD COLUMN IF NOT EXISTS case_studies TEXT,
            ADD COLUMN IF NOT EXISTS total_engagements VARCHAR(50),
            ADD COLUMN IF NOT EXISTS client_testimonials TEXT,
            ADD COLUMN IF NOT EXISTS media_coverage TEXT,
            ADD COLUMN IF NOT EXISTS twitter_url VARCHAR(500),
            ADD COLUMN IF NOT EXISTS youtube_url VARCHAR(500),
            ADD COLUMN IF NOT EXISTS instagram_url VARCHAR(500),
            ADD COLUMN IF NOT EXISTS blog_url VARCHAR(500),
            ADD COLUMN IF NOT EXISTS published_content TEXT,
            ADD COLUMN IF NOT EXISTS podcast_appearances TEXT,
            ADD COLUMN IF NOT EXISTS booking_lead_time VARCHAR(100),
            ADD COLUMN IF NOT EXISTS availability_constraints TEXT,
            ADD COLUMN IF NOT EXISTS technical_requirements TEXT,
            ADD COLUMN IF NOT EXISTS past_client_references TEXT,
            ADD COLUMN IF NOT EXISTS speaker_bureau_experience TEXT,
            ADD COLUMN IF NOT EXISTS why_speak_about_ai TEXT,
            ADD COLUMN IF NOT EXISTS additional_info TEXT,
            ADD COLUMN IF NOT EXISTS agree_to_terms BOOLEAN DEFAULT false
            """,
        ),
    ),
    Migration(
        version="004",
        name="vendor_application_fields",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS vendor_applications (
                id SERIAL PRIMARY KEY,
                company_name VARCHAR(255) NOT NULL,
                contact_name VARCHAR(255) NOT NULL,
                email VARCHAR(255) NOT NULL,
                status VARCHAR(50) DEFAULT 'pending',
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            ALTER TABLE vendor_applications
            ADD COLUMN IF NOT EXISTS pricing_range VARCHAR(100),
            ADD COLUMN IF NOT EXISTS team_size VARCHAR(50),
            ADD COLUMN IF NOT EXISTS why_join TEXT,
            ADD COLUMN IF NOT EXISTS certifications TEXT,
            ADD COLUMN IF NOT EXISTS testimonials TEXT
            """,
        ),
    ),
    Migration(
        version="005",
        name="create_whatsapp_applications",
        statements=(
            """
            CREATE TABLE IF NOT EXISTS whatsapp_applications (
                id SERIAL PRIMARY KEY,
                email VARCHAR(255) UNIQUE NOT NULL,
                full_name VARCHAR(255) NOT NULL,
                linkedin_url VARCHAR(500) NOT NULL,
                phone_number VARCHAR(50) NOT NULL,
                primary_role VARCHAR(100) NOT NULL,
                other_role VARCHAR(255),
                value_expectations TEXT[],
                agree_to_rules BOOLEAN NOT NULL DEFAULT false,
                status VARCHAR(50) DEFAULT 'pending'
                    CHECK (status IN ('pending', 'approved', 'rejected', 'invited')),
                admin_notes TEXT,
                rejection_reason TEXT,
                whatsapp_invite_sent_at TIMESTAMP WITH TIME ZONE,
                whatsapp_joined_at TIMESTAMP WITH TIME ZONE,
                whatsapp_invite_link VARCHAR(500),
                created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
                reviewed_at TIMESTAMP WITH TIME ZONE,
                reviewed_by VARCHAR(255),
                submission_ip INET,
                user_agent TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_whatsapp_applications_status ON whatsapp_applications(status)",
            "CREATE INDEX IF NOT EXISTS idx_whatsapp_applications_email ON whatsapp_applications(email)",
            "CREATE INDEX IF NOT EXISTS idx_whatsapp_applications_created ON whatsapp_applications(created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_whatsapp_applications_primary_role ON whatsapp_applications(primary_role)",
        )
        + _updated_at_trigger("whatsapp_applications"),
    ),
)


def check_registry(migrations: Tuple[Migration, ...]) -> None:
    """
    Raises:
        ValueError: If versions are duplicated or out of order
    """
    previous = None
    for migration in migrations:
        if previous is not None and migration.version <= previous:
            raise ValueError(
                f"Migration {migration.version} must sort after {previous}; versions must be unique and increasing"
            )
        if not migration.statements:
            raise ValueError(f"Migration {migration.version} has no statements")
        previous = migration.version


check_registry(MIGRATIONS)

"""Create languages, translations and prompts tables."""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20250301_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "languages",
        sa.Column("code", sa.String(length=5), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("percent_translated", sa.Float(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("code", name="pk_languages"),
    )
    op.create_table(
        "translations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("translation_key", sa.Text(), nullable=False),
        sa.Column("language_code", sa.String(length=5), nullable=False),
        sa.Column("translated_text", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=True),
        sa.Column(
            "last_updated",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["language_code"],
            ["languages.code"],
            name="fk_translations_language_code_languages",
            ondelete="cascade",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_translations"),
        sa.UniqueConstraint(
            "translation_key", "language_code", name="uq_translations_key_language"
        ),
    )
    op.create_index("ix_translations_key", "translations", ["translation_key"], unique=False)
    op.create_table(
        "prompts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_prompts"),
    )


def downgrade() -> None:
    op.drop_table("prompts")
    op.drop_index("ix_translations_key", table_name="translations")
    op.drop_table("translations")
    op.drop_table("languages")

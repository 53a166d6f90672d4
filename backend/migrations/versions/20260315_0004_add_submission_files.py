from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260315_0004"
down_revision = "20260301_0003"
branch_labels = None
depends_on = None

def upgrade() -> None:
    # [{name, type, size, url}] for submitted rows, [{..., preview}] for drafts
    op.add_column("submissions", sa.Column("files", postgresql.JSONB(astext_type=sa.Text()), nullable=True))

def downgrade() -> None:
    op.drop_column("submissions", "files")

"""switch passwords to scrypt and store permsets as JSON

Revision ID: c7d92f1e4b38
Revises: 8b4e6d0c5a21
Create Date: 2019-12-02 20:17:55.904163

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'c7d92f1e4b38'
down_revision = '8b4e6d0c5a21'
branch_labels = None
depends_on = None

# frozen copy of the capability names in bit order, see wstore.permissions
PERMISSION_NAMES = [
    "view", "edit", "create", "rename", "tag", "delete", "restore", "upload",
    "rate", "lock", "manage_members", "manage_roles", "ban", "manage_settings",
]
PERMSET_WIDTH = 16


def upgrade():
    # every bit becomes a named boolean entry
    pairs = ", ".join(
        "'{}', substring(permset from {} for 1) = B'1'".format(name, i + 1)
        for i, name in enumerate(PERMISSION_NAMES)
    )
    op.alter_column("roles", "permset",
               existing_type=postgresql.BIT(PERMSET_WIDTH),
               type_=postgresql.JSONB(),
               existing_nullable=False,
               postgresql_using="jsonb_build_object({})".format(pairs))

    # PBKDF2 hashes cannot be converted, users have to set a new password
    op.execute("DELETE FROM passwords")
    for column in ["iterations", "key_size", "digest"]:
        # drops the check constraints too
        op.drop_column("passwords", column)
    op.add_column("passwords", sa.Column("logn", sa.SmallInteger, nullable=False))
    op.add_column("passwords", sa.Column("param_r", sa.Integer, nullable=False))
    op.add_column("passwords", sa.Column("param_p", sa.Integer, nullable=False))
    op.create_check_constraint("check_logn", "passwords", "abs(logn) < 128")
    op.create_check_constraint("check_param_r", "passwords", "param_r > 0")
    op.create_check_constraint("check_param_p", "passwords", "param_p > 0")


def downgrade():
    # missing or false entries become zero bits, the tail is zero-padded
    bits = " || ".join(
        "CASE WHEN coalesce((permset ->> '{}')::boolean, false) THEN '1' ELSE '0' END".format(name)
        for name in PERMISSION_NAMES
    )
    padding = "0" * (PERMSET_WIDTH - len(PERMISSION_NAMES))
    op.alter_column("roles", "permset",
               existing_type=postgresql.JSONB(),
               type_=postgresql.BIT(PERMSET_WIDTH),
               existing_nullable=False,
               postgresql_using="({} || '{}')::bit({})".format(bits, padding, PERMSET_WIDTH))

    # scrypt hashes cannot be converted either
    op.execute("DELETE FROM passwords")
    for column in ["logn", "param_r", "param_p"]:
        op.drop_column("passwords", column)
    op.add_column("passwords", sa.Column("iterations", sa.Integer, nullable=False))
    op.add_column("passwords", sa.Column("key_size", sa.SmallInteger, nullable=False))
    op.add_column("passwords", sa.Column("digest", sa.UnicodeText, nullable=False))
    op.create_check_constraint("check_iterations", "passwords", "iterations > 0")
    op.create_check_constraint("check_key_size", "passwords", "key_size > 0")
    op.create_check_constraint("check_digest", "passwords", "digest IN ('sha256', 'sha512')")

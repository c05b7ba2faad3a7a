"""insert default users

Revision ID: 8b4e6d0c5a21
Revises: 3f1c2a9d7e10
Create Date: 2019-10-19 11:42:13.271905

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b4e6d0c5a21'
down_revision = '3f1c2a9d7e10'
branch_labels = None
depends_on = None

# frozen copy of the accounts, later changes to wstore.db.constants must not
# affect this revision
DEFAULT_USERS = [
    (0, "unknown", "unknown@example.com", "Standard account for unknown users", "unknown"),
    (1, "administrator", "noreply@example.com", "Standard account for root-level access", "Site-01"),
    (2, "system", "system@example.com", "Standard account for system actions", "everywhere"),
    (3, "anonymous", "anonymous@example.com", "Standard account for anonymous users", "unknown"),
    (4, "nobody", "nobody@example.com", "Standard account for unprivileged users", "?"),
]


def _users_table():
    # create ad-hoc table for data migration
    return sa.sql.table("users",
                    sa.Column("user_id", sa.types.BigInteger),
                    sa.Column("name", sa.types.UnicodeText),
                    sa.Column("email", sa.types.UnicodeText),
                    sa.Column("is_verified", sa.types.Boolean),
                    sa.Column("is_special", sa.types.Boolean),
                    sa.Column("website", sa.types.UnicodeText),
                    sa.Column("about", sa.types.UnicodeText),
                    sa.Column("location", sa.types.UnicodeText),
                    # other columns have server defaults
                )


def upgrade():
    users = _users_table()
    op.bulk_insert(users, [
        {
            "user_id": user_id,
            "name": name,
            "email": email,
            "is_verified": True,
            "is_special": True,
            "website": "https://example.com/",
            "about": about,
            "location": location,
        }
        for user_id, name, email, about, location in DEFAULT_USERS
    ])
    # explicit IDs do not advance the sequence
    op.execute("SELECT setval(pg_get_serial_sequence('users', 'user_id'), "
               "(SELECT max(user_id) FROM users))")


def downgrade():
    users = _users_table()
    ids = [user[0] for user in DEFAULT_USERS]
    op.execute(
        users.delete().where(users.c.user_id.in_(ids))
    )

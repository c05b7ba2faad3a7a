import alembic.config
import alembic.script

from wstore.db.database import MIGRATIONS_DIR


def _script_directory():
    cfg = alembic.config.Config()
    cfg.set_main_option("script_location", MIGRATIONS_DIR)
    return alembic.script.ScriptDirectory.from_config(cfg)


def test_linear_history() -> None:
    script = _script_directory()
    assert script.get_heads() == ["c7d92f1e4b38"]
    assert script.get_bases() == ["3f1c2a9d7e10"]
    history = [rev.revision for rev in script.walk_revisions("base", "heads")]
    # walk_revisions goes from the head down
    assert history == ["c7d92f1e4b38", "8b4e6d0c5a21", "3f1c2a9d7e10"]


def test_default_users_are_frozen() -> None:
    from wstore.db.constants import DEFAULT_USERS
    module = _script_directory().get_revision("8b4e6d0c5a21").module
    frozen = {user[0]: user[1] for user in module.DEFAULT_USERS}
    assert frozen == {user["user_id"]: user["name"] for user in DEFAULT_USERS}


def test_permission_names_are_frozen() -> None:
    from wstore.permissions import Permission, PERMSET_WIDTH
    module = _script_directory().get_revision("c7d92f1e4b38").module
    assert module.PERMISSION_NAMES == [member.name.lower() for member in Permission]
    assert module.PERMSET_WIDTH == PERMSET_WIDTH

import pytest

from wstore.db import Files, Pages
from wstore.db.exceptions import FileExists, FileNotFound, PageNotFound
from tests.fixtures.database import GIT_COMMIT


@pytest.fixture
def files(db):
    return Files(db)


@pytest.fixture
def file_id(files, page_id):
    return files.add(page_id, "logo.png", "https://files.example.com/logo.png", "The logo")


def test_add(files, page_id, file_id):
    entry = files.get(file_id)
    assert entry.page_id == page_id
    assert entry.file_name == "logo.png"
    assert entry.file_uri == "https://files.example.com/logo.png"
    assert entry.description == "The logo"
    assert files.get_by_name("logo.png").file_id == file_id
    assert [f.file_id for f in files.list(page_id)] == [file_id]


@pytest.mark.parametrize("name, uri", [
    ("logo.png", "https://files.example.com/other.png"),
    ("other.png", "https://files.example.com/logo.png"),
])
def test_add_duplicate(files, page_id, file_id, name, uri):
    with pytest.raises(FileExists):
        files.add(page_id, name, uri)


def test_add_missing_page(files):
    with pytest.raises(PageNotFound):
        files.add(987654, "orphan.png", "https://files.example.com/orphan.png")


def test_set_description(files, file_id):
    files.set_description(file_id, "The new logo")
    assert files.get(file_id).description == "The new logo"
    with pytest.raises(FileNotFound):
        files.set_description(987654, "nothing")


def test_move(db, files, page_id, file_id, make_commit):
    other, _ = Pages(db).create(make_commit("other"), GIT_COMMIT, "Other")
    files.move(file_id, other)
    assert files.list(page_id) == []
    assert [f.file_id for f in files.list(other)] == [file_id]
    with pytest.raises(PageNotFound):
        files.move(file_id, 987654)


def test_remove(files, file_id):
    assert files.remove(file_id) is True
    assert files.remove(file_id) is False
    assert files.get(file_id) is None

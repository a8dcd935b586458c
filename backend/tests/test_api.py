import asyncio

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from novelshelf.api.dependencies import get_chapter_store
from novelshelf.core.chapter_store import SqlAlchemyChapterStore
from novelshelf.main import app
from novelshelf.models.database import Base, Chapter, Novel, get_db
from tests.conftest import make_epub, simple_epub

EPUB_MIME = "application/epub+zip"


class FailingChapterStore(SqlAlchemyChapterStore):
    """Breaks on the second chapter of an import."""

    calls = 0

    async def add_chapter(self, chapter):
        FailingChapterStore.calls += 1
        if FailingChapterStore.calls == 2:
            raise RuntimeError("database is locked")
        return await super().add_chapter(chapter)


@pytest.fixture
def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def count_rows(session_maker, model) -> int:
    async def run():
        async with session_maker() as session:
            return (await session.execute(select(func.count()).select_from(model))).scalar_one()

    return asyncio.run(run())


def upload(data: bytes, filename: str = "book.epub"):
    return {"file": (filename, data, EPUB_MIME)}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_novel_from_epub(client, session_maker):
    data = simple_epub(
        [("ch1.xhtml", "The Storm"), ("ch2.xhtml", "The Harbor")],
        title="Sea Story",
        creator="M. Author",
    )

    response = client.post("/api/v1/novels/epub", files=upload(data))

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Sea Story"
    assert body["author"] == "M. Author"
    assert body["imported_chapters"] == 2
    assert (body["first_sequence"], body["last_sequence"]) == (1, 2)
    assert count_rows(session_maker, Chapter) == 2


def test_form_fields_override_metadata(client):
    data = simple_epub([("ch1.xhtml", "One")], title="Sea Story")

    response = client.post(
        "/api/v1/novels/epub",
        files=upload(data),
        data={"title": "  My Title  ", "author": "Me"},
    )

    assert response.status_code == 200
    assert response.json()["title"] == "My Title"
    assert response.json()["author"] == "Me"


def test_untitled_package_gets_generic_title(client):
    response = client.post("/api/v1/novels/epub", files=upload(simple_epub([("ch1.xhtml", "One")])))
    assert response.json()["title"] == "Imported EPUB"


def test_append_to_existing_novel(client, session_maker):
    created = client.post(
        "/api/v1/novels/epub",
        files=upload(simple_epub([("ch1.xhtml", "One"), ("ch2.xhtml", "Two")], title="Saga")),
    ).json()

    response = client.post(
        f"/api/v1/novels/{created['novel_id']}/epub",
        files=upload(simple_epub([("ch3.xhtml", "Three")], title="Saga, Part Two")),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["novel_id"] == created["novel_id"]
    assert body["title"] == "Saga"
    assert (body["first_sequence"], body["last_sequence"]) == (3, 3)
    assert count_rows(session_maker, Chapter) == 3
    assert count_rows(session_maker, Novel) == 1


def test_append_to_missing_novel(client):
    response = client.post("/api/v1/novels/999/epub", files=upload(simple_epub([("ch1.xhtml", "One")])))
    assert response.status_code == 404


def test_rejects_non_epub_filename(client):
    response = client.post("/api/v1/novels/epub", files=upload(b"data", filename="book.pdf"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Only EPUB files are allowed"


@pytest.mark.parametrize(
    "data, status_code, detail",
    [
        (b"not a zip", 400, "not a zip archive"),
        (make_epub({}, rootfile=None), 422, "container.xml"),
        (make_epub({"OEBPS/content.opf": "<package/>"}), 422, "No readable chapters"),
        (make_epub({"OEBPS/content.opf": "<package/>", "OEBPS/a.xhtml": "<h1>Contents</h1>"}), 422, "front matter"),
    ],
)
def test_pipeline_failures_map_to_distinct_errors(client, session_maker, data, status_code, detail):
    response = client.post("/api/v1/novels/epub", files=upload(data))

    assert response.status_code == status_code
    assert detail in response.json()["detail"]
    # no empty novel left behind
    assert count_rows(session_maker, Novel) == 0


def test_store_failure_rolls_back_everything(client, session_maker):
    async def failing_store(db: AsyncSession = Depends(get_db)):
        return FailingChapterStore(db)

    FailingChapterStore.calls = 0
    app.dependency_overrides[get_chapter_store] = failing_store
    data = simple_epub([("ch1.xhtml", "One"), ("ch2.xhtml", "Two")])

    response = client.post("/api/v1/novels/epub", files=upload(data))

    assert response.status_code == 500
    assert "after 1 chapter" in response.json()["detail"]
    assert count_rows(session_maker, Novel) == 0
    assert count_rows(session_maker, Chapter) == 0


def test_novel_creation_failure_is_reported_as_persistence_error(client, session_maker):
    class BrokenCatalog(SqlAlchemyChapterStore):
        async def create_novel(self, title, author=None, language=None):
            raise RuntimeError("disk full")

    async def broken_store(db: AsyncSession = Depends(get_db)):
        return BrokenCatalog(db)

    app.dependency_overrides[get_chapter_store] = broken_store

    response = client.post("/api/v1/novels/epub", files=upload(simple_epub([("ch1.xhtml", "One")])))

    assert response.status_code == 500
    assert response.json()["detail"] == "Saving chapters failed after 0 chapter(s): disk full"
    assert count_rows(session_maker, Novel) == 0

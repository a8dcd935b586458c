import io
import zipfile
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from novelshelf.models.database import Base

LOREM = (
    "The rain had not stopped for three days, and the river below the old "
    "mill was already climbing the stone steps one by one."
)

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{rootfile}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def chapter_html(heading: Optional[str], body: str = LOREM, page_title: Optional[str] = None) -> str:
    head = f"<title>{page_title}</title>" if page_title else ""
    h1 = f"<h1>{heading}</h1>" if heading else ""
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<html xmlns="http://www.w3.org/1999/xhtml">'
        f"<head>{head}</head><body>{h1}<p>{body}</p></body></html>"
    )


def build_opf(
    manifest: list[tuple],
    spine: list[str],
    title: Optional[str] = None,
    creator: Optional[str] = None,
    language: Optional[str] = None,
) -> str:
    """Package document from (id, href, media_type[, properties]) tuples."""
    meta = ""
    if title is not None:
        meta += f"<dc:title>{title}</dc:title>"
    if creator is not None:
        meta += f"<dc:creator>{creator}</dc:creator>"
    if language is not None:
        meta += f"<dc:language>{language}</dc:language>"

    items = []
    for entry in manifest:
        item_id, href, media_type = entry[:3]
        props = f' properties="{entry[3]}"' if len(entry) > 3 else ""
        items.append(f'<item id="{item_id}" href="{href}" media-type="{media_type}"{props}/>')

    itemrefs = "".join(f'<itemref idref="{idref}"/>' for idref in spine)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<package xmlns="http://www.idpf.org/2007/opf" version="3.0">'
        f'<metadata xmlns:dc="http://purl.org/dc/elements/1.1/">{meta}</metadata>'
        f"<manifest>{''.join(items)}</manifest>"
        f'<spine toc="ncx">{itemrefs}</spine>'
        "</package>"
    )


def build_ncx(srcs: list[str]) -> str:
    points = "".join(
        f'<navPoint id="p{i}" playOrder="{i}"><navLabel><text>Entry {i}</text></navLabel>'
        f'<content src="{src}"/></navPoint>'
        for i, src in enumerate(srcs, start=1)
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">'
        f"<navMap>{points}</navMap></ncx>"
    )


def make_epub(files: dict, rootfile: Optional[str] = "OEBPS/content.opf") -> bytes:
    """Zip the given {path: text|bytes} entries, plus a container pointing at rootfile."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr("mimetype", "application/epub+zip", compress_type=zipfile.ZIP_STORED)
        if rootfile is not None:
            zf.writestr("META-INF/container.xml", CONTAINER_XML.format(rootfile=rootfile))
        for path, content in files.items():
            zf.writestr(path, content)
    return buffer.getvalue()


def simple_epub(chapters: list[tuple[str, str]], **opf_kwargs) -> bytes:
    """EPUB whose spine lists (file name, heading) chapters in OEBPS/."""
    manifest = [(f"c{i}", name, "application/xhtml+xml") for i, (name, _) in enumerate(chapters)]
    files = {
        "OEBPS/content.opf": build_opf(manifest, [m[0] for m in manifest], **opf_kwargs),
    }
    for name, heading in chapters:
        files[f"OEBPS/{name}"] = chapter_html(heading)
    return make_epub(files)


class FakeChapterStore:
    """In-memory ChapterStore that can be told to fail."""

    def __init__(self, existing_max: int = 0, fail_on_chapter: Optional[int] = None):
        self.max_seq = {}
        self.existing_max = existing_max
        self.fail_on_chapter = fail_on_chapter
        self.chapters = []
        self.variants = []

    async def next_sequence(self, novel_id: int) -> int:
        return self.max_seq.get(novel_id, self.existing_max) + 1

    async def add_chapter(self, chapter) -> int:
        if self.fail_on_chapter is not None and len(self.chapters) + 1 == self.fail_on_chapter:
            raise RuntimeError("disk I/O error")
        self.chapters.append(chapter)
        self.max_seq[chapter.novel_id] = chapter.seq
        return len(self.chapters)

    async def add_variant(self, variant) -> int:
        self.variants.append(variant)
        return len(self.variants)


@pytest.fixture
async def db_session(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()

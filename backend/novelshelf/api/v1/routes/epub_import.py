"""EPUB import API routes."""

import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from novelshelf.api.dependencies import ChapterStoreDep, ValidatedNovel
from novelshelf.config import settings
from novelshelf.core.epub import (
    ArchiveFormatError,
    EpubImporter,
    EpubImportError,
    ImportCancelledError,
    ImportSummary,
    InvalidContainerError,
    NoImportableChaptersError,
    NoReadableContentError,
    PersistenceError,
)
from novelshelf.models.schemas import EpubImportResponse

logger = logging.getLogger(__name__)

router = APIRouter()

# Each pipeline failure gets its own status so clients can tell them apart
ERROR_STATUS_CODES: dict[type[EpubImportError], int] = {
    ArchiveFormatError: 400,
    InvalidContainerError: 422,
    NoReadableContentError: 422,
    NoImportableChaptersError: 422,
    ImportCancelledError: 409,
    PersistenceError: 500,
}

READ_CHUNK_SIZE = 1024 * 1024  # 1MB chunks


async def _read_upload(file: UploadFile) -> bytes:
    """Validate and read an uploaded EPUB into memory.

    Reads in chunks and enforces the size limit during the read, which
    protects against clients that lie about Content-Length.
    """
    if not file.filename or not file.filename.lower().endswith(".epub"):
        raise HTTPException(status_code=400, detail="Only EPUB files are allowed")

    max_size = settings.max_upload_size_mb * 1024 * 1024
    if file.size and file.size > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
        )

    chunks = []
    total_read = 0
    while True:
        chunk = await file.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        total_read += len(chunk)
        if total_read > max_size:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum size is {settings.max_upload_size_mb}MB",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def _raise_for_import_error(e: EpubImportError) -> NoReturn:
    status_code = next(
        (code for error_type, code in ERROR_STATUS_CODES.items() if isinstance(e, error_type)),
        422,
    )
    raise HTTPException(status_code=status_code, detail=str(e)) from e


def _build_response(
    summary: ImportSummary,
    title: str,
    author: Optional[str],
    excluded_items: int,
) -> EpubImportResponse:
    return EpubImportResponse(
        novel_id=summary.novel_id,
        title=title,
        author=author,
        imported_chapters=summary.imported_chapters,
        first_sequence=summary.sequences[0],
        last_sequence=summary.sequences[-1],
        excluded_items=excluded_items,
    )


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


@router.post("/novels/epub", response_model=EpubImportResponse)
async def import_epub_as_novel(
    store: ChapterStoreDep,
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    author: Optional[str] = Form(None),
    language: Optional[str] = Form(None),
):
    """Create a novel from an EPUB and import its chapters.

    Title and author typed by the user win; otherwise the package metadata is
    used, and finally a generic title.
    """
    data = await _read_upload(file)
    importer = EpubImporter()

    try:
        result = await importer.extract(data)

        novel_title = _clean(title) or result.novel_title_guess or settings.fallback_novel_title
        novel_author = _clean(author) or result.author_guess
        novel_language = _clean(language) or result.language_guess or settings.default_language

        # Created only now so a broken archive leaves no empty novel behind
        try:
            novel = await store.create_novel(novel_title, novel_author, novel_language)
        except Exception as e:
            logger.error("Creating novel %r failed: %s", novel_title, e)
            raise PersistenceError(0, e) from e
        summary = await importer.persist(result, store, novel.id, language=novel_language)
        await store.db.commit()
    except EpubImportError as e:
        await store.db.rollback()
        logger.warning("EPUB import of %s failed: %s", file.filename, e)
        _raise_for_import_error(e)

    logger.info(
        "Created novel %s from %s with %d chapters",
        novel.id,
        file.filename,
        summary.imported_chapters,
    )
    return _build_response(summary, novel.title, novel.author, len(result.excluded))


@router.post("/novels/{novel_id}/epub", response_model=EpubImportResponse)
async def import_epub_chapters(
    novel: ValidatedNovel,
    store: ChapterStoreDep,
    file: UploadFile = File(...),
    language: Optional[str] = Form(None),
):
    """Append the chapters of an EPUB to an existing novel."""
    novel_id = novel.id  # rollback expires the instance
    data = await _read_upload(file)
    importer = EpubImporter()

    try:
        result = await importer.extract(
            data, title_fallback=novel.title, author_fallback=novel.author
        )
        summary = await importer.persist(
            result,
            store,
            novel_id,
            language=_clean(language) or novel.lang_original or settings.default_language,
        )
        await store.db.commit()
    except EpubImportError as e:
        await store.db.rollback()
        logger.warning("EPUB import into novel %s failed: %s", novel_id, e)
        _raise_for_import_error(e)

    return _build_response(summary, novel.title, novel.author, len(result.excluded))

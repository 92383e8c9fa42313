from __future__ import annotations

import json
import os
import threading
import time
from pathlib import Path

from mediashelf.application.services.indexing_service import IndexingService
from mediashelf.application.services.thumbnail_service import ThumbnailService
from mediashelf.core.errors import ThumbnailRenderError
from mediashelf.infrastructure.db.repos.item_repo import ItemRepo
from mediashelf.infrastructure.db.repos.thumbnail_repo import ThumbnailRepo
from mediashelf.infrastructure.db.sqlite import initialize_schema
from mediashelf.infrastructure.thumbnails.renderers import RenderedThumbnail

_PDF = b"%PDF-1.4\n1 0 obj << /Type /Pages /Count 3 >> endobj\n2 0 obj << /Title (Opening Theory) >> endobj\n%%EOF\n"


def _fake_renderer(item_type: str, source: Path, width: int) -> RenderedThumbnail:
    return RenderedThumbnail(png=b"\x89PNG fake", width=width, height=width)


def _failing_renderer(item_type: str, source: Path, width: int) -> RenderedThumbnail:
    raise ThumbnailRenderError(f"cannot render {source.name}")


def _build(tmp_path: Path, *, renderer=_fake_renderer, pre_render_html: bool = False):
    db_path = tmp_path / "library.db"
    initialize_schema(db_path)
    library = tmp_path / "library"
    thumbs = ThumbnailService(ThumbnailRepo(db_path), tmp_path / "thumbs", library, renderer=renderer)
    service = IndexingService(
        ItemRepo(db_path),
        thumbs,
        library,
        pre_render_html=pre_render_html,
        thumbnail_workers=2,
    )
    return service, library, db_path


def _populate(library: Path) -> None:
    (library / "go" / "pro").mkdir(parents=True, exist_ok=True)
    (library / "books.pdf").write_bytes(_PDF)
    (library / "go" / "pro" / "game.sgf").write_text("(;PB[Cho]PW[Go]KM[6.5])", encoding="utf-8")
    (library / "go" / "page.html").write_text("<title>Rules</title>", encoding="utf-8")
    (library / ".hidden.pdf").write_bytes(_PDF)
    (library / "readme.txt").write_text("skip me", encoding="utf-8")


def test_first_scan_adds_items_with_metadata(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path)
    _populate(library)

    report = service.scan()

    assert (report.scanned, report.added, report.updated, report.removed) == (3, 3, 0, 0)
    # pdf + sgf, two variants each; html renders lazily
    assert report.thumbnails_rendered == 4
    assert report.thumbnail_failures == 0

    items = {item.path: item for item in ItemRepo(db_path).list_all()}
    assert set(items) == {"books.pdf", "go/pro/game.sgf", "go/page.html"}

    pdf = items["books.pdf"]
    assert (pdf.type, pdf.title, pdf.pages, pdf.folder) == ("pdf", "Opening Theory", 3, "")

    sgf = items["go/pro/game.sgf"]
    assert sgf.title == "Cho vs Go"
    assert sgf.folder == "go/pro"
    assert json.loads(sgf.meta_json) == {"PB": "Cho", "PW": "Go", "KM": "6.5"}
    assert sgf.grid_thumb_path is not None

    html = items["go/page.html"]
    assert html.title == "Rules"
    assert html.grid_thumb_path is None


def test_rescan_without_changes_keeps_rows_stable(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path)
    _populate(library)
    service.scan()
    before = {item.path: (item.id, item.updated_at, item.created_at) for item in ItemRepo(db_path).list_all()}

    time.sleep(0.01)
    report = service.scan()

    after = {item.path: (item.id, item.updated_at, item.created_at) for item in ItemRepo(db_path).list_all()}
    assert (report.unchanged, report.added, report.updated) == (3, 0, 0)
    assert report.thumbnails_rendered == 0
    assert after == before


def test_modified_file_is_updated_and_rethumbnailed(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path)
    _populate(library)
    service.scan()
    repo = ItemRepo(db_path)
    original = next(i for i in repo.list_all() if i.path == "go/pro/game.sgf")

    game = library / "go" / "pro" / "game.sgf"
    game.write_text("(;EV[Title Match]PB[Cho]PW[Go])", encoding="utf-8")
    future = time.time() + 60
    os.utime(game, (future, future))
    report = service.scan()

    updated = repo.get_by_id(original.id)
    assert report.updated == 1
    assert report.thumbnails_rendered == 2
    assert updated.title == "Title Match"
    assert updated.created_at == original.created_at
    assert updated.updated_at >= original.updated_at


def test_deleted_file_removes_row_and_thumbnails(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path)
    _populate(library)
    service.scan()
    repo = ItemRepo(db_path)
    pdf = next(i for i in repo.list_all() if i.path == "books.pdf")
    thumb = tmp_path / "thumbs" / f"{pdf.id}-cover.png"
    assert thumb.exists()

    (library / "books.pdf").unlink()
    report = service.scan()

    assert report.removed == 1
    assert repo.get_by_id(pdf.id) is None
    assert ThumbnailRepo(db_path).get(pdf.id, "cover") is None
    assert not thumb.exists()


def test_re_added_file_gets_a_fresh_id(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path)
    _populate(library)
    service.scan()
    repo = ItemRepo(db_path)
    old_id = next(i.id for i in repo.list_all() if i.path == "books.pdf")

    (library / "books.pdf").unlink()
    service.scan()
    (library / "books.pdf").write_bytes(_PDF)
    service.scan()

    new_id = next(i.id for i in repo.list_all() if i.path == "books.pdf")
    assert new_id > old_id


def test_thumbnail_failures_do_not_abort_scan(tmp_path: Path) -> None:
    service, library, db_path = _build(tmp_path, renderer=_failing_renderer)
    _populate(library)

    report = service.scan()

    assert report.added == 3
    assert report.thumbnail_failures == 4
    assert report.thumbnails_rendered == 0
    assert len(ItemRepo(db_path).list_all()) == 3


def test_html_thumbnails_prerender_when_enabled(tmp_path: Path) -> None:
    service, library, _ = _build(tmp_path, pre_render_html=True)
    _populate(library)

    assert service.scan().thumbnails_rendered == 6


def test_missing_library_root_is_created(tmp_path: Path) -> None:
    service, library, _ = _build(tmp_path)
    assert not library.exists()

    report = service.scan()

    assert library.is_dir()
    assert report.scanned == 0


def test_concurrent_scans_run_one_after_another(tmp_path: Path) -> None:
    render_started = threading.Event()
    render_ends: list[float] = []

    def slow_renderer(item_type: str, source: Path, width: int) -> RenderedThumbnail:
        render_started.set()
        time.sleep(0.3)
        render_ends.append(time.monotonic())
        return _fake_renderer(item_type, source, width)

    service, library, _ = _build(tmp_path, renderer=slow_renderer)
    _populate(library)
    reports = []
    first = threading.Thread(target=lambda: reports.append(service.scan()))
    first.start()
    assert render_started.wait(5)

    second_report = service.scan()
    second_returned = time.monotonic()
    first.join(5)

    assert not first.is_alive()
    assert len(reports) == 1
    assert reports[0].added == 3
    assert reports[0].thumbnails_rendered == 4
    assert max(render_ends) <= second_returned
    assert (second_report.scanned, second_report.added, second_report.removed) == (3, 0, 0)

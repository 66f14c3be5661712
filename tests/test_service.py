import base64
import io
import random

import pytest
from PIL import Image

from gallery import thumbs
from gallery.service import FolderNotFound, build_crumbs, natural_key
from conftest import write_video


def _png_data_url(size=(4, 3), color=(200, 30, 30, 255)) -> str:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


PNG_DATA = _png_data_url()


def test_natural_key_orders_numbers():
    names = ["file10.mp4", "File2.mp4", "file1.mp4", "a.mp4", "10.mp4"]
    assert sorted(names, key=natural_key) == ["10.mp4", "a.mp4", "file1.mp4", "File2.mp4", "file10.mp4"]


def test_build_crumbs():
    crumbs = build_crumbs("Movies/Sci Fi")
    assert [(c.name, c.url) for c in crumbs] == [
        ("Movies", "?path=Movies"),
        ("Sci Fi", "?path=Movies%2FSci%20Fi"),
    ]
    assert build_crumbs("") == []


def test_list_page_paginates_in_natural_order(service, library):
    for i in range(1, 26):
        write_video(library, f"show/ep{i}.mp4")
    write_video(library, "show/readme.txt")
    (library / "show" / "extras").mkdir()

    first = service.list_page("show", page=1, page_size=10)
    assert [v.name for v in first.videos][:3] == ["ep1.mp4", "ep2.mp4", "ep3.mp4"]
    assert first.total == 25
    assert first.hasMore is True
    assert first.page == 1

    last = service.list_page("show", page=3, page_size=10)
    assert [v.name for v in last.videos] == [f"ep{i}.mp4" for i in range(21, 26)]
    assert last.hasMore is False

    beyond = service.list_page("show", page=9, page_size=10)
    assert beyond.videos == []
    assert beyond.hasMore is False


def test_list_page_missing_folder_raises(service):
    with pytest.raises(FolderNotFound):
        service.list_page("no/such/folder")


def test_list_page_traversal_is_clamped_to_root(service, library):
    write_video(library, "top.mp4")
    page = service.list_page("../../..")
    assert [v.path for v in page.videos] == ["top.mp4"]


def test_list_page_enrichment(service, store, config, library):
    write_video(library, "a.mp4", size=2048)
    write_video(library, "b.mp4")
    store.toggle_favorite("a.mp4")
    store.set_video_meta("a.mp4", {"duration": 120.0})
    store.update_progress("a.mp4", 30, 120)
    store.update_progress("b.mp4", 10, 0)
    thumbs.save_thumbnail(config.thumb_dir, "a.mp4", PNG_DATA)

    a, b = service.list_page("").videos
    assert a.isFavorite is True
    assert a.duration == 120.0
    assert a.progress == 30
    assert a.percent == 25
    assert a.hasThumb is True
    assert a.thumbUrl == "/.thumbnails/" + thumbs.thumbnail_filename("a.mp4")
    assert a.size == "2 KB"

    assert b.isFavorite is False
    assert b.duration is None
    assert b.percent == 0
    assert b.hasThumb is False
    assert b.thumbUrl == ""


def test_folder_view_root(service, store, library, clock):
    write_video(library, "Movies/m1.mp4")
    write_video(library, "b.mp4")
    write_video(library, "a.mp4")
    (library / "Alpha").mkdir()
    store.update_progress("Movies/m1.mp4", 10, 100)
    store.toggle_favorite("a.mp4")
    clock.tick()
    store.update_progress("a.mp4", 1, 60)

    view = service.folder_view("")
    assert view.currentPath == ""
    assert view.crumbs == []
    assert [f.name for f in view.folders] == ["Alpha", "Movies"]
    assert [v.name for v in view.videos] == ["a.mp4", "b.mp4"]
    assert view.hasMoreVideos is False
    assert [c.path for c in view.continueWatching][0] == "a.mp4"
    assert view.continueWatching[1].name == "m1.mp4"
    assert [(f.path, f.duration) for f in view.favorites] == [("a.mp4", 60)]


def test_folder_view_subfolder_next_video(service, store, library):
    for n in ("ep1.mp4", "ep2.mp4", "ep10.mp4"):
        write_video(library, f"show/{n}")
    store.update_progress("x.mp4", 5, 100)

    view = service.folder_view("show", active="show/ep2.mp4")
    assert view.activeVideo == "show/ep2.mp4"
    assert view.nextVideo.path == "show/ep10.mp4"
    assert view.continueWatching == []
    assert view.favorites == []
    assert [c.name for c in view.crumbs] == ["show"]

    assert service.folder_view("show", active="show/ep10.mp4").nextVideo is None
    assert service.folder_view("show", active="show/zzz.mp4").nextVideo is None


def test_folder_view_missing(service):
    with pytest.raises(FolderNotFound):
        service.folder_view("ghost")


def test_search_requires_two_chars(service, library):
    write_video(library, "abc.mp4")
    assert service.search("") == []
    assert service.search("a") == []
    assert [e.path for e in service.search("ab")] == ["abc.mp4"]


def test_save_thumbnail_writes_jpeg_and_duration(service, store, config):
    out = service.save_thumbnail("dir/v.mp4", PNG_DATA, duration=33.0)
    with open(out, "rb") as f:
        assert f.read(2) == b"\xff\xd8"
    assert thumbs.thumb_info(config.thumb_dir, "dir/v.mp4")[1] is True
    meta = store.get_video_meta("dir/v.mp4")
    assert meta["duration"] == 33.0
    assert meta["hasThumbnail"] is True


def test_save_thumbnail_without_duration_leaves_metadata(service, store):
    service.save_thumbnail("v.mp4", PNG_DATA)
    assert store.get_video_meta("v.mp4") is None


@pytest.mark.parametrize("data", ["data:image/png;base64,bm90IGFuIGltYWdl", "%%%", ""])
def test_save_thumbnail_rejects_bad_data(service, config, data):
    with pytest.raises(ValueError):
        service.save_thumbnail("v.mp4", data)
    assert thumbs.thumb_info(config.thumb_dir, "v.mp4") == ("", False)


def test_random_video(service, library):
    assert service.random_video("") is None
    assert service.random_video("missing") is None
    write_video(library, "d/x.mp4")
    write_video(library, "d/y.mp4")
    assert service.random_video("d", rng=random.Random(1)) in ("d/x.mp4", "d/y.mp4")


def test_random_global(service, library):
    assert service.random_global() == (None, None)
    write_video(library, "deep/er/z.mp4")
    assert service.random_global(rng=random.Random(3)) == ("deep/er/z.mp4", "deep/er")


def test_hidden_folder_is_not_found_rather_than_its_parent(service, library):
    write_video(library, "movies/public.mp4")
    write_video(library, "movies/.private/secret.mp4")

    with pytest.raises(FolderNotFound):
        service.list_page("movies/.private")
    with pytest.raises(FolderNotFound):
        service.folder_view("movies/.private")
    assert service.random_video("movies/.private") is None
    assert [v.path for v in service.list_page("movies").videos] == ["movies/public.mp4"]


def test_favorites_lists_paths_in_order(service, store):
    store.toggle_favorite("b.mp4")
    store.toggle_favorite("a.mp4")
    assert service.favorites() == ["b.mp4", "a.mp4"]


def test_save_thumbnail_rejects_oversized_image(service, config, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1)
    with pytest.raises(ValueError):
        service.save_thumbnail("v.mp4", PNG_DATA)
    assert thumbs.thumb_info(config.thumb_dir, "v.mp4") == ("", False)

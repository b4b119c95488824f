from pathlib import Path

import pytest

from wavestream.application.services.library_service import LibraryService
from wavestream.application.services.resolver_service import ResolverService, filename_candidate
from wavestream.core.errors import ResolutionError
from wavestream.domain.models.media import StoredMedia
from wavestream.infrastructure.db.repos.media_repo import MediaRepo
from wavestream.infrastructure.db.sqlite import initialize_schema
from wavestream.infrastructure.library.provider import LibraryMediaProvider
from wavestream.infrastructure.library.store import MediaStore


def _bootstrap(tmp_path: Path) -> tuple[ResolverService, LibraryService]:
    db_path = tmp_path / "wavestream.db"
    initialize_schema(db_path)
    repo = MediaRepo(db_path)
    store = MediaStore(tmp_path / "media")
    provider = LibraryMediaProvider(repo, store)
    return ResolverService(provider), LibraryService(repo, store)


def _add(library: LibraryService, tmp_path: Path, name: str, content: bytes, **kwargs):
    source = tmp_path / "incoming" / name
    source.parent.mkdir(parents=True, exist_ok=True)
    source.write_bytes(content)
    return library.add_file(source, **kwargs).record


class CountingProvider:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.calls: list[str] = []

    def lookup_by_id(self, resource_id: int) -> StoredMedia | None:
        self.calls.append(f"id:{resource_id}")
        if resource_id != 42:
            return None
        return StoredMedia(path=self.path, size=4, mime_type="audio/wav", modified_at=1.0)

    def search_by_filename(self, filename: str, *, exact: bool) -> int | None:
        self.calls.append(f"filename:{filename}:{exact}")
        return None

    def search_by_title(self, text: str) -> int | None:
        self.calls.append(f"title:{text}")
        return None

    def public_url(self, resource_id: int) -> str | None:
        return None


def test_numeric_locator_goes_straight_to_id_lookup(tmp_path: Path) -> None:
    provider = CountingProvider(tmp_path / "a.wav")
    ref = ResolverService(provider).resolve("42")
    assert ref.id == 42
    assert ref.resolved_by == "id"
    assert provider.calls == ["id:42"]


def test_unknown_numeric_id_does_not_fall_back_to_search(tmp_path: Path) -> None:
    provider = CountingProvider(tmp_path / "a.wav")
    with pytest.raises(ResolutionError):
        ResolverService(provider).resolve("7")
    assert provider.calls == ["id:7"]


def test_fallback_order_is_exact_then_partial_then_title(tmp_path: Path) -> None:
    provider = CountingProvider(tmp_path / "a.wav")
    with pytest.raises(ResolutionError):
        ResolverService(provider).resolve("https://cdn.example.com/audio/Field%20Take.wav?x=1")
    assert provider.calls == [
        "filename:Field Take.wav:True",
        "filename:Field Take.wav:False",
        "title:Field Take",
    ]


def test_empty_locator_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ResolutionError):
        ResolverService(CountingProvider(tmp_path / "a.wav")).resolve("   ")


@pytest.mark.parametrize(
    "locator,expected",
    [
        ("take.wav", "take.wav"),
        ("2026/10/take.wav", "take.wav"),
        ("https://example.com/media/2026/10/take.wav?v=3#t=10", "take.wav"),
        ("take%2Ewav", "take.wav"),
        ("C:\\Users\\me\\take.wav", "take.wav"),
        ("https://example.com/", ""),
        ("https://host/audio/track%231.wav", "track#1.wav"),
        ("track%3F2.wav?download=1", "track?2.wav"),
    ],
)
def test_filename_candidate(locator: str, expected: str) -> None:
    assert filename_candidate(locator) == expected


def test_exact_filename_beats_substring_match(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    retake = _add(library, tmp_path, "retake.wav", b"RIFF-retake")
    take = _add(library, tmp_path, "take.wav", b"RIFF-take")
    assert retake.id < take.id

    ref = resolver.resolve("take.wav")
    assert ref.id == take.id
    assert ref.resolved_by == "filename_exact"


def test_exact_match_ignores_case(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    take = _add(library, tmp_path, "take.wav", b"RIFF-take")
    assert resolver.resolve("TAKE.WAV").id == take.id


def test_partial_match_picks_lowest_id(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    first = _add(library, tmp_path, "session-a-mix.wav", b"a")
    _add(library, tmp_path, "session-b-mix.wav", b"b")

    ref = resolver.resolve("mix.wav")
    assert ref.id == first.id
    assert ref.resolved_by == "filename_partial"


def test_url_locator_is_decoded_before_matching(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    take = _add(library, tmp_path, "take.wav", b"RIFF-take")
    ref = resolver.resolve(f"https://example.com/media/{take.stored_relpath}?ver=2")
    assert ref.id == take.id


def test_title_search_is_last_resort(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    song = _add(library, tmp_path, "track01.wav", b"song", title="Harbour Dawn Chorus")

    ref = resolver.resolve("Harbour%20Dawn.wav")
    assert ref.id == song.id
    assert ref.resolved_by == "title_search"


def test_resolution_is_idempotent(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    _add(library, tmp_path, "take.wav", b"RIFF-take")
    assert resolver.resolve("take.wav") == resolver.resolve("take.wav")


def test_reference_reflects_file_on_disk(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    take = _add(library, tmp_path, "take.wav", b"0123456789")

    ref = resolver.resolve_id(take.id)
    assert ref.size == 10
    assert ref.mime_type == "audio/wav"
    assert ref.path.read_bytes() == b"0123456789"

    ref.path.write_bytes(b"01234")
    assert resolver.resolve_id(take.id).size == 5


def test_missing_file_is_not_resolvable(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    take = _add(library, tmp_path, "take.wav", b"RIFF-take")
    resolver.resolve_id(take.id).path.unlink()
    with pytest.raises(ResolutionError):
        resolver.resolve("take.wav")


def test_unknown_name_raises(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    _add(library, tmp_path, "take.wav", b"RIFF-take")
    with pytest.raises(ResolutionError):
        resolver.resolve("nothing-like-it.mp3")


def test_id_beyond_integer_range_is_not_found(tmp_path: Path) -> None:
    provider = CountingProvider(tmp_path / "a.wav")
    resolver = ResolverService(provider)
    with pytest.raises(ResolutionError):
        resolver.resolve("99999999999999999999")
    with pytest.raises(ResolutionError):
        resolver.resolve_id(2**63)
    assert provider.calls == []


def test_id_beyond_integer_range_with_library(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    _add(library, tmp_path, "take.wav", b"RIFF-take")
    with pytest.raises(ResolutionError):
        resolver.resolve(str(2**64))


def test_encoded_hash_in_name_does_not_match_shorter_name(tmp_path: Path) -> None:
    resolver, library = _bootstrap(tmp_path)
    _add(library, tmp_path, "track.wav", b"RIFF-track")
    with pytest.raises(ResolutionError):
        resolver.resolve("track%231.wav")
    with pytest.raises(ResolutionError):
        resolver.resolve("https://host/audio/track%231.wav")

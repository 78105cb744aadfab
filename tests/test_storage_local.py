from __future__ import annotations

import asyncio
import base64
from pathlib import Path

import allure
import pytest

from napkin_visuals.errors import StorageError
from napkin_visuals.storage import LocalDestination, create_storage_backend
from napkin_visuals.storage.local import LocalStorage

pytestmark = [
    allure.epic("Storage"),
    allure.feature("Local Filesystem"),
]


def test_store_bytes_round_trip(tmp_path: Path) -> None:
    storage = LocalStorage(LocalDestination(directory=str(tmp_path)))

    result = asyncio.run(storage.store(b"\x89PNG\r\n", "chart.png", "image/png"))

    assert result.location == str(tmp_path.resolve() / "chart.png")
    assert (tmp_path / "chart.png").read_bytes() == b"\x89PNG\r\n"
    assert result.public_url is None
    assert result.metadata == {
        "directory": str(tmp_path.resolve()),
        "filename": "chart.png",
        "size": 6,
    }


def test_string_content_is_base64_decoded(tmp_path: Path) -> None:
    storage = LocalStorage(LocalDestination(directory=str(tmp_path)))
    encoded = base64.b64encode(b"<svg/>").decode("ascii")

    asyncio.run(storage.store(encoded, "visual.svg"))

    assert (tmp_path / "visual.svg").read_bytes() == b"<svg/>"


def test_invalid_base64_string_is_rejected(tmp_path: Path) -> None:
    storage = LocalStorage(LocalDestination(directory=str(tmp_path)))

    with pytest.raises(ValueError, match="base64"):
        asyncio.run(storage.store("not base64 !!", "visual.svg"))


def test_nested_directory_is_created_once_and_reused(tmp_path: Path) -> None:
    directory = tmp_path / "a" / "b" / "c"
    storage = LocalStorage(LocalDestination(directory=str(directory)))

    async def scenario():
        return await asyncio.gather(
            storage.store(b"one", "one.svg"),
            storage.store(b"two", "two.svg"),
        )

    asyncio.run(scenario())
    asyncio.run(storage.store(b"three", "three.svg"))

    assert sorted(path.name for path in directory.iterdir()) == ["one.svg", "three.svg", "two.svg"]


def test_overwrites_existing_file(tmp_path: Path) -> None:
    storage = LocalStorage(LocalDestination(directory=str(tmp_path)))

    asyncio.run(storage.store(b"old", "same.svg"))
    asyncio.run(storage.store(b"new", "same.svg"))

    assert (tmp_path / "same.svg").read_bytes() == b"new"


@pytest.mark.parametrize("filename", ["../escape.svg", "nested/file.svg", "", ".."])
def test_filename_must_be_bare(tmp_path: Path, filename: str) -> None:
    storage = LocalStorage(LocalDestination(directory=str(tmp_path)))

    with pytest.raises(ValueError, match="directory components"):
        asyncio.run(storage.store(b"x", filename))


def test_relative_directory_is_resolved(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    storage = create_storage_backend(LocalDestination(directory="out"))

    result = asyncio.run(storage.store(b"x", "v.svg"))

    assert storage.is_configured()
    assert result.location == str(tmp_path.resolve() / "out" / "v.svg")


def test_empty_directory_is_rejected() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        LocalStorage(LocalDestination(directory="  "))


def test_unwritable_target_is_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    storage = LocalStorage(LocalDestination(directory=str(blocker / "sub")))

    with pytest.raises(StorageError) as excinfo:
        asyncio.run(storage.store(b"x", "v.svg"))

    assert excinfo.value.backend == "local"
    assert str(excinfo.value).startswith("[local] ")

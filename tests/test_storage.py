"""Tests for the key-value storage backends and date-picker preferences."""

import pytest

from services.storage_service import (
    MemoryStorageService,
    FileStorageService,
    StorageService,
    create_storage_service,
)
from services.date_preferences import DatePreferencesService, preferences_key
from datetime import date


class TestMemoryStorage:
    def test_missing_key_is_none(self):
        assert MemoryStorageService().get("nope") is None

    def test_values_are_copied(self):
        storage = MemoryStorageService()
        value = {"cycles": []}

        storage.set("k", value)
        value["cycles"].append("mutated")
        loaded = storage.get("k")
        loaded["cycles"].append("also mutated")

        assert storage.get("k") == {"cycles": []}

    def test_remove(self):
        storage = MemoryStorageService()
        storage.set("k", 1)

        storage.remove("k")
        storage.remove("k")

        assert storage.get("k") is None
        assert storage.keys() == []


class TestFileStorage:
    def test_round_trip(self, tmp_path):
        storage = FileStorageService(str(tmp_path))

        storage.set("ivf-tracker-storage-abc", {"cycles": [{"id": "c1"}]})

        assert storage.get("ivf-tracker-storage-abc") == {"cycles": [{"id": "c1"}]}
        assert (tmp_path / "ivf-tracker-storage-abc.json").exists()

    def test_keys_are_sanitized(self, tmp_path):
        storage = FileStorageService(str(tmp_path))

        storage.set("../escape/attempt", {"ok": True})

        assert storage.get("../escape/attempt") == {"ok": True}
        assert len(list(tmp_path.glob("*.json"))) == 1

    def test_corrupt_file_reads_as_none(self, tmp_path):
        storage = FileStorageService(str(tmp_path))
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")

        assert storage.get("broken") is None

    def test_remove(self, tmp_path):
        storage = FileStorageService(str(tmp_path))
        storage.set("k", [1, 2])

        storage.remove("k")

        assert storage.get("k") is None


class TestFactory:
    def test_backend_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STORAGE_BACKEND", "file")
        monkeypatch.setenv("TRACKER_DATA_DIR", str(tmp_path))

        assert isinstance(create_storage_service(), FileStorageService)
        assert isinstance(create_storage_service("memory"), MemoryStorageService)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_storage_service("redis")

    def test_supabase_requires_credentials(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_SERVICE_KEY", raising=False)

        with pytest.raises(ValueError):
            create_storage_service("supabase")


class _BrokenStorage(StorageService):
    def get(self, key):
        raise RuntimeError("disk on fire")

    def set(self, key, value):
        raise RuntimeError("disk on fire")

    def remove(self, key):
        raise RuntimeError("disk on fire")


class TestDatePreferences:
    def test_save_and_read(self):
        service = DatePreferencesService(MemoryStorageService())

        service.save_date("u1", "startDate", "2024-03-01")
        service.save_date("u1", "dayDate", "2024-03-09")

        assert service.get_preferences("u1") == {"lastStartDate": "2024-03-01", "lastDayDate": "2024-03-09"}
        assert service.get_date("u1", "startDate") == "2024-03-01"
        assert service.get_preferences("u2") == {}

    def test_stored_per_user(self):
        storage = MemoryStorageService()
        DatePreferencesService(storage).save_date("u1", "endDate", "2024-04-01")

        assert storage.get(preferences_key("u1")) == {"lastEndDate": "2024-04-01"}

    def test_invalid_input(self):
        service = DatePreferencesService(MemoryStorageService())

        with pytest.raises(ValueError):
            service.save_date("u1", "birthday", "2024-01-01")
        with pytest.raises(ValueError):
            service.save_date("u1", "startDate", "not a date")

    def test_failures_are_not_fatal(self):
        service = DatePreferencesService(_BrokenStorage())

        assert service.get_preferences("u1") == {}
        assert service.save_date("u1", "startDate", "2024-03-01") == {"lastStartDate": "2024-03-01"}

    def test_default_month(self):
        service = DatePreferencesService(MemoryStorageService())

        assert service.get_default_month("u1", "startDate", today=date(2024, 7, 15)) == "2024-07"

        service.save_date("u1", "startDate", "2023-11-20")
        assert service.get_default_month("u1", "startDate", today=date(2024, 7, 15)) == "2023-11"


class TestStorageBase:
    def test_incomplete_backend_cannot_be_created(self):
        class GetOnlyStorage(StorageService):
            def get(self, key):
                return None

        with pytest.raises(TypeError):
            GetOnlyStorage()

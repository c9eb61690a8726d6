# services/storage_service.py
from supabase import create_client, Client
import os
import json
import copy
from pathlib import Path
from typing import Dict, Optional, Any
from datetime import datetime
from abc import ABC, abstractmethod

STORAGE_TABLE = 'tracker_storage'


class StorageService(ABC):
    """
    Key-value blob store used for the per-user tracker state and the auth directory.
    Values are JSON-compatible objects; a missing key reads as None.
    """
    backend = "base"

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "backend": self.backend,
            "timestamp": datetime.utcnow().isoformat()
        }


class MemoryStorageService(StorageService):
    """In-process store; values are deep-copied so callers never share state with the store"""
    backend = "memory"

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data.keys())


class FileStorageService(StorageService):
    """One JSON file per key under a data directory"""
    backend = "file"

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir or os.getenv("TRACKER_DATA_DIR", "./data"))
        self.data_dir.mkdir(parents=True, exist_ok=True)
        print(f"✅ File storage initialized at {self.data_dir}")

    def _path(self, key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.data_dir / f"{safe_key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"❌ Error reading {path}: {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
            tmp_path.replace(path)
        except OSError as e:
            print(f"❌ Error writing {path}: {e}")
            raise Exception(f"Failed to save {key}: {str(e)}")

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


class SupabaseStorageService(StorageService):
    """Blobs stored as rows of the tracker_storage table (key text primary key, value jsonb)"""
    backend = "supabase"

    def __init__(self):
        url = os.getenv("SUPABASE_URL")
        key = os.getenv("SUPABASE_SERVICE_KEY")

        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in environment variables")

        self.client: Client = create_client(url, key)
        print("✅ Supabase client initialized")

    def get(self, key: str) -> Optional[Any]:
        try:
            response = self.client.table(STORAGE_TABLE)\
                .select('value')\
                .eq('key', key)\
                .execute()

            if response.data:
                return response.data[0].get('value')
            return None
        except Exception as e:
            print(f"❌ Supabase fetch error for {key}: {str(e)}")
            return None

    def set(self, key: str, value: Any) -> None:
        try:
            self.client.table(STORAGE_TABLE)\
                .upsert({
                    'key': key,
                    'value': value,
                    'updated_at': datetime.utcnow().isoformat()
                })\
                .execute()
        except Exception as e:
            print(f"❌ Error saving {key} to Supabase: {e}")
            raise Exception(f"Failed to save {key}: {str(e)}")

    def remove(self, key: str) -> None:
        try:
            self.client.table(STORAGE_TABLE)\
                .delete()\
                .eq('key', key)\
                .execute()
        except Exception as e:
            print(f"❌ Error deleting {key} from Supabase: {e}")
            raise Exception(f"Failed to delete {key}: {str(e)}")

    def health_check(self) -> Dict[str, Any]:
        """Check if Supabase connection is working"""
        try:
            self.client.table(STORAGE_TABLE).select('key').limit(1).execute()

            return {
                "status": "healthy",
                "backend": self.backend,
                "message": "Supabase connection working",
                "timestamp": datetime.utcnow().isoformat()
            }

        except Exception as e:
            return {
                "status": "unhealthy",
                "backend": self.backend,
                "message": f"Supabase connection failed: {str(e)}",
                "timestamp": datetime.utcnow().isoformat()
            }


def create_storage_service(backend: Optional[str] = None) -> StorageService:
    """Build the storage backend named by STORAGE_BACKEND (memory, file or supabase)"""
    backend = (backend or os.getenv("STORAGE_BACKEND", "memory")).lower()

    if backend == "supabase":
        return SupabaseStorageService()
    if backend == "file":
        return FileStorageService()
    if backend == "memory":
        return MemoryStorageService()

    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


# Global storage instance
storage_service: Optional[StorageService] = None

def get_storage_service() -> StorageService:
    """Get the global storage service instance"""
    global storage_service
    if storage_service is None:
        storage_service = create_storage_service()
    return storage_service

def init_storage_service(service: Optional[StorageService] = None) -> StorageService:
    """Initialize the global storage service"""
    global storage_service
    storage_service = service or create_storage_service()
    return storage_service

# services/date_preferences.py
"""Last-used dates for the date pickers. Failures here never break a request."""
from datetime import date
from typing import Dict, Optional

from services.storage_service import StorageService, get_storage_service
from utils.date_utils import parse_date

DATE_PREFS_KEY_PREFIX = "ivf-tracker-date-picker-preferences"

PREFERENCE_KEYS = {
    'startDate': 'lastStartDate',
    'endDate': 'lastEndDate',
    'dateOfBirth': 'lastDateOfBirth',
    'clinicVisitDate': 'lastClinicVisitDate',
    'dayDate': 'lastDayDate',
}


def preferences_key(user_id: str) -> str:
    return f"{DATE_PREFS_KEY_PREFIX}-{user_id}"


class DatePreferencesService:
    def __init__(self, storage: Optional[StorageService] = None):
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        return self._storage or get_storage_service()

    def get_preferences(self, user_id: str) -> Dict[str, str]:
        try:
            stored = self.storage.get(preferences_key(user_id))
            return stored if isinstance(stored, dict) else {}
        except Exception as e:
            print(f"⚠️ Failed to load date preferences: {e}")
            return {}

    def save_date(self, user_id: str, date_type: str, value: str) -> Dict[str, str]:
        if date_type not in PREFERENCE_KEYS:
            raise ValueError(f"Unknown date type: {date_type}")
        if parse_date(value) is None:
            raise ValueError(f"Invalid date: {value}")

        preferences = self.get_preferences(user_id)
        preferences[PREFERENCE_KEYS[date_type]] = value
        try:
            self.storage.set(preferences_key(user_id), preferences)
        except Exception as e:
            print(f"⚠️ Failed to save date preferences: {e}")
        return preferences

    def get_date(self, user_id: str, date_type: str) -> Optional[str]:
        key = PREFERENCE_KEYS.get(date_type)
        return self.get_preferences(user_id).get(key) if key else None

    def get_default_month(self, user_id: str, date_type: str, today: Optional[date] = None) -> str:
        """Month (YYYY-MM) a picker should open on: the last used date's month, else the current month"""
        last = parse_date(self.get_date(user_id, date_type))
        month = last or today or date.today()
        return month.strftime('%Y-%m')


# Global service instance
date_preferences_service: Optional[DatePreferencesService] = None

def get_date_preferences_service() -> DatePreferencesService:
    """Get the global date preferences service instance"""
    global date_preferences_service
    if date_preferences_service is None:
        date_preferences_service = DatePreferencesService()
    return date_preferences_service

def init_date_preferences_service(storage: Optional[StorageService] = None) -> DatePreferencesService:
    global date_preferences_service
    date_preferences_service = DatePreferencesService(storage)
    return date_preferences_service

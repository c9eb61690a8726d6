# services/auth_service.py
import uuid
from typing import Dict, List, Optional, Any

import bcrypt

from services.storage_service import StorageService, get_storage_service
from services.tracker_store import TrackerStoreService, get_tracker_store
from services.date_preferences import preferences_key
from services.errors import (
    DuplicateUsernameError,
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
)
from utils.date_utils import now_iso

AUTH_STORAGE_KEY = "ivf-tracker-auth"


def hash_password(password: str) -> str:
    """Hash password with bcrypt"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Malformed hash
        return False


def public_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """User record without its password hash"""
    if user is None:
        return None
    return {k: v for k, v in user.items() if k != 'passwordHash'}


class AuthService:
    """User directory plus the pointer to the active user"""

    def __init__(self, storage: Optional[StorageService] = None, tracker_store: Optional[TrackerStoreService] = None):
        self._storage = storage
        self._tracker_store = tracker_store

    @property
    def storage(self) -> StorageService:
        return self._storage or get_storage_service()

    @property
    def tracker_store(self) -> TrackerStoreService:
        return self._tracker_store or get_tracker_store()

    def _load(self) -> Dict[str, Any]:
        directory = self.storage.get(AUTH_STORAGE_KEY)
        if not isinstance(directory, dict):
            return {'users': [], 'currentUser': None}
        if 'state' in directory and isinstance(directory['state'], dict):
            directory = directory['state']
        directory.setdefault('users', [])
        directory.setdefault('currentUser', None)
        # Older directories stored the whole user object
        if isinstance(directory['currentUser'], dict):
            directory['currentUser'] = directory['currentUser'].get('id')
        return directory

    def _save(self, directory: Dict[str, Any]):
        self.storage.set(AUTH_STORAGE_KEY, directory)

    @staticmethod
    def _find(directory: Dict[str, Any], user_id: str) -> Optional[Dict[str, Any]]:
        return next((u for u in directory['users'] if u.get('id') == user_id), None)

    async def create_account(self, username: str, display_name: str, email: str, password: str) -> Dict[str, Any]:
        """Creates the user, makes them active and initializes an empty tracker blob"""
        directory = self._load()
        username = username.strip().lower()
        email = email.strip()

        if any(u.get('username', '').lower() == username for u in directory['users']):
            raise DuplicateUsernameError()
        if any(u.get('email', '').lower() == email.lower() for u in directory['users']):
            raise DuplicateEmailError()

        now = now_iso()
        user = {
            'id': str(uuid.uuid4()),
            'username': username,
            'displayName': display_name.strip(),
            'email': email,
            'passwordHash': hash_password(password),
            'createdAt': now,
            'lastLoginAt': now,
        }
        directory['users'].append(user)
        directory['currentUser'] = user['id']
        self._save(directory)

        await self.tracker_store.initialize_state(user['id'])
        print(f"✅ Created account for {username}")
        return public_user(user)

    async def login_user(self, username: str, password: str) -> Dict[str, Any]:
        directory = self._load()
        username = username.strip().lower()

        user = next((u for u in directory['users'] if u.get('username', '').lower() == username), None)
        if user is None or not verify_password(password, user.get('passwordHash', '')):
            raise InvalidCredentialsError()

        user['lastLoginAt'] = now_iso()
        directory['currentUser'] = user['id']
        self._save(directory)
        print(f"✅ {username} logged in")
        return public_user(user)

    async def logout_user(self) -> None:
        directory = self._load()
        directory['currentUser'] = None
        self._save(directory)

    async def switch_user(self, user_id: str) -> Dict[str, Any]:
        """Makes another known user active; the next data request reads their blob"""
        directory = self._load()
        user = self._find(directory, user_id)
        if user is None:
            raise UserNotFoundError()

        user['lastLoginAt'] = now_iso()
        directory['currentUser'] = user_id
        self._save(directory)
        print(f"🔄 Switched active user to {user.get('username')}")
        return public_user(user)

    async def delete_account(self, user_id: str) -> None:
        directory = self._load()
        if self._find(directory, user_id) is None:
            raise UserNotFoundError()

        directory['users'] = [u for u in directory['users'] if u.get('id') != user_id]
        if directory['currentUser'] == user_id:
            directory['currentUser'] = None
        self._save(directory)

        await self.tracker_store.remove_state(user_id)
        self.storage.remove(preferences_key(user_id))
        print(f"🗑️ Deleted account {user_id}")

    async def update_current_user(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        directory = self._load()
        user = self._find(directory, directory['currentUser']) if directory['currentUser'] else None
        if user is None:
            raise UserNotFoundError("No user is logged in")

        if updates.get('email') and updates['email'].lower() != user.get('email', '').lower():
            if any(u.get('email', '').lower() == updates['email'].lower() for u in directory['users']):
                raise DuplicateEmailError()
            user['email'] = updates['email']
        if updates.get('displayName'):
            user['displayName'] = updates['displayName']
        if updates.get('password'):
            user['passwordHash'] = hash_password(updates['password'])

        self._save(directory)
        return public_user(user)

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        return public_user(self._find(self._load(), user_id))

    async def get_all_users(self) -> List[Dict[str, Any]]:
        return [public_user(u) for u in self._load()['users']]

    async def get_current_user(self) -> Optional[Dict[str, Any]]:
        directory = self._load()
        if not directory['currentUser']:
            return None
        return public_user(self._find(directory, directory['currentUser']))


# Global service instance
auth_service: Optional[AuthService] = None

def get_auth_service() -> AuthService:
    """Get the global auth service instance"""
    global auth_service
    if auth_service is None:
        auth_service = AuthService()
    return auth_service

def init_auth_service(storage: Optional[StorageService] = None,
                      tracker_store: Optional[TrackerStoreService] = None) -> AuthService:
    """Initialize the global auth service"""
    global auth_service
    auth_service = AuthService(storage, tracker_store)
    return auth_service

# api/users.py
from fastapi import APIRouter, HTTPException
from datetime import datetime

from models.schemas import UserCreate, UserResponse, UserLogin, UserLoginResponse, UserUpdate, UserListResponse
from services.auth_service import get_auth_service
from services.errors import AuthError, UserNotFoundError
from utils.error_utils import to_http_exception

router = APIRouter()

async def get_active_user_id() -> str:
    """Dependency for data routes: id of the logged in user, 401 when nobody is"""
    current_user = await get_auth_service().get_current_user()
    if not current_user:
        raise HTTPException(status_code=401, detail="No user is logged in")
    return current_user['id']

@router.post("/register", response_model=UserLoginResponse)
async def register_user(user_data: UserCreate):
    """Create an account and make it the active user"""
    try:
        print(f"🔍 Registering user: {user_data.username}")

        user = await get_auth_service().create_account(
            user_data.username,
            user_data.displayName,
            user_data.email,
            user_data.password
        )

        return UserLoginResponse(
            success=True,
            user=UserResponse(**user),
            message="User registered successfully"
        )

    except AuthError as e:
        return UserLoginResponse(success=False, error=str(e))
    except Exception as e:
        print(f"❌ Error registering user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/login", response_model=UserLoginResponse)
async def login_user(login_data: UserLogin):
    try:
        print(f"🔍 Login attempt for: {login_data.username}")

        user = await get_auth_service().login_user(login_data.username, login_data.password)

        return UserLoginResponse(
            success=True,
            user=UserResponse(**user),
            message="Login successful"
        )

    except AuthError as e:
        return UserLoginResponse(success=False, error=str(e))
    except Exception as e:
        print(f"❌ Error during login: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/logout")
async def logout_user():
    try:
        await get_auth_service().logout_user()
        return {"success": True, "message": "Logged out"}

    except Exception as e:
        print(f"❌ Error during logout: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.post("/switch/{user_id}", response_model=UserLoginResponse)
async def switch_user(user_id: str):
    """Make another known user active"""
    try:
        user = await get_auth_service().switch_user(user_id)
        return UserLoginResponse(success=True, user=UserResponse(**user), message="Switched user")

    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception as e:
        print(f"❌ Error switching user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/current")
async def get_current_user():
    try:
        user = await get_auth_service().get_current_user()
        return {"success": True, "user": user}

    except Exception as e:
        print(f"❌ Error getting current user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/all", response_model=UserListResponse)
async def get_all_users():
    """All users known on this device, for the user switcher"""
    try:
        auth_service = get_auth_service()
        users = await auth_service.get_all_users()
        current_user = await auth_service.get_current_user()

        return UserListResponse(
            success=True,
            users=[UserResponse(**u) for u in users],
            currentUserId=current_user['id'] if current_user else None
        )

    except Exception as e:
        print(f"❌ Error listing users: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.put("/update-user")
async def update_user(user_data: UserUpdate):
    """Update the logged in user"""
    try:
        # Convert to dict and remove None values
        update_data = {k: v for k, v in user_data.model_dump().items() if v is not None}

        updated_user = await get_auth_service().update_current_user(update_data)

        return {"success": True, "user": updated_user}

    except UserNotFoundError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AuthError as e:
        return {"success": False, "error": str(e)}
    except Exception as e:
        print(f"❌ Error updating user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.delete("/{user_id}")
async def delete_user(user_id: str):
    """Delete an account together with all of its tracker data"""
    try:
        await get_auth_service().delete_account(user_id)
        return {"success": True, "message": "Account deleted"}

    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    except Exception as e:
        print(f"❌ Error deleting user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str):
    """Get user by ID"""
    try:
        user = await get_auth_service().get_user_by_id(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        return UserResponse(**user)

    except HTTPException:
        raise
    except Exception as e:
        print(f"❌ Error getting user: {e}")
        raise HTTPException(status_code=500, detail=str(e))

@router.get("/")
async def health_check():
    """Health check for users API"""
    return {"status": "Users API is healthy", "timestamp": datetime.utcnow()}

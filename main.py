# main.py
from fastapi.middleware.cors import CORSMiddleware
import os
from dotenv import load_dotenv

from fastapi import FastAPI, Request, Response
from api import users, cycles, medications, records, summary
from services.storage_service import init_storage_service, get_storage_service
from services.tracker_store import init_tracker_store
from services.auth_service import init_auth_service
from services.date_preferences import init_date_preferences_service

# Load environment variables
load_dotenv()

# Initialize FastAPI app
app = FastAPI(
    title="IVF Journey Tracker Backend",
    description="Cycle, medication and outcome tracking for IVF journeys",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "*"  # single-user tracker, any frontend origin
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services on startup
@app.on_event("startup")
async def startup_event():
    """Initialize services when the app starts"""
    print("🚀 Starting IVF Journey Tracker Backend...")

    try:
        storage = init_storage_service()
        print(f"✅ Storage service initialized ({os.getenv('STORAGE_BACKEND', 'memory')})")

        tracker_store = init_tracker_store(storage)
        init_auth_service(storage, tracker_store)
        init_date_preferences_service(storage)
        print("✅ Tracker, auth and date preference services initialized")

        print("🎉 Backend startup complete!")

    except Exception as e:
        print(f"❌ Error during startup: {e}")
        raise

# Include API routers
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(cycles.router, prefix="/api/cycles", tags=["cycles"])
app.include_router(medications.router, prefix="/api/cycles", tags=["medications"])
app.include_router(records.router, prefix="/api/records", tags=["records"])
app.include_router(summary.router, prefix="/api/summary", tags=["summary"])

# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "IVF Journey Tracker API",
        "version": "1.0.0",
        "status": "running",
        "features": ["user_management", "cycle_tracking", "medication_tracking", "journey_summary"]
    }

@app.options("/{rest_of_path:path}")
async def preflight_handler(request: Request, rest_of_path: str):
    """Handle CORS preflight requests"""
    response = Response()
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "*"
    return response

# Health check endpoint
@app.get("/health")
async def health_check():
    try:
        storage_health = get_storage_service().health_check()

        return {
            "status": "healthy" if storage_health.get("status") == "healthy" else "unhealthy",
            "services": {
                "api": "healthy",
                "storage": storage_health
            },
            "message": "All services are running"
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "message": "Some services are down"
        }

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)

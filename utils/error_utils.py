# utils/error_utils.py
import traceback
from fastapi import HTTPException

def to_http_exception(e: Exception, context: str) -> HTTPException:
    """
    Map a failure inside a route to the response status:
    missing records -> 404, rejected operations -> 400, anything else -> 500.
    """
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))

    print(f"❌ Error {context}: {e}")
    traceback.print_exc()
    return HTTPException(status_code=500, detail=str(e))

# mfg_inventory/common/response.py

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class SuccessResponse:
    @staticmethod
    def send(data=None, message="Success") -> dict:
        return {
            "success": True,
            "message": message,
            "data": data
        }


class ErrorResponse:
    @staticmethod
    def send(
        message: str = "An error occurred",
        status_code: int = 500,
        error: Optional[str] = None,
        details: Any = None,
    ) -> JSONResponse:
        response = {
            "success": False,
            "message": message,
            "error": error,
        }
        if details is not None:
            response["details"] = details
        return JSONResponse(status_code=status_code, content=jsonable_encoder(response))

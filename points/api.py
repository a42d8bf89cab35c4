import logging
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .models import (
    AddTransactionRequest, SpendRequest, SpendErrorKind, SpendFailure,
    PayerPoints, SpendPlanResponse, LedgerHistoryResponse, ValidationFailure,
)
from .service import LedgerService
from .settings import Settings, configure_logging

logger = logging.getLogger(__name__)


def _error_detail(failure: Union[ValidationFailure, SpendFailure]) -> dict:
    error = failure.error.value if isinstance(failure.error, SpendErrorKind) else failure.error
    return {"error": error, "message": failure.message}


def _raise_for_spend_failure(failure: SpendFailure) -> None:
    if failure.error == SpendErrorKind.INSUFFICIENT:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_error_detail(failure))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(failure))


def create_app(
    service: Optional[LedgerService] = None,
    settings: Optional[Settings] = None,
    root_path: str = "",
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    ledger_service = service or LedgerService()

    app = FastAPI(
        title="Points Ledger API",
        description="Per-user reward points with oldest-first spending across payers",
        version="1.0.0",
        root_path=root_path,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/status", tags=["System"])
    def status_check():
        return {"status": "OK"}

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": settings.service_name}

    @app.post("/points/user/{user_id}/transaction", tags=["Points"])
    def add_transaction(user_id: str, request: AddTransactionRequest) -> dict:
        result = ledger_service.add_transaction(user_id, request.payer, request.points, request.timestamp)
        if isinstance(result, ValidationFailure):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_error_detail(result))
        return {"status": result.status}

    @app.get("/points/user/{user_id}/balances", response_model=dict[str, int], tags=["Points"])
    def get_balances(user_id: str) -> dict[str, int]:
        return ledger_service.get_balances(user_id)

    @app.post("/points/user/{user_id}/spend", response_model=list[PayerPoints], tags=["Points"])
    def spend_points(user_id: str, request: SpendRequest) -> list[PayerPoints]:
        result = ledger_service.spend(user_id, request.points)
        if isinstance(result, SpendFailure):
            _raise_for_spend_failure(result)
        return result.committed

    @app.get("/points/user/{user_id}/spend-plan", response_model=SpendPlanResponse, tags=["Points"])
    def preview_spend(user_id: str, points: int) -> SpendPlanResponse:
        result = ledger_service.preview_spend(user_id, points)
        if isinstance(result, SpendFailure):
            _raise_for_spend_failure(result)
        return result

    @app.get("/points/user/{user_id}/transactions", response_model=LedgerHistoryResponse, tags=["Points"])
    def get_transactions(user_id: str) -> LedgerHistoryResponse:
        return ledger_service.get_history(user_id)

    return app


if __name__ == "__main__":
    import uvicorn
    _settings = Settings.from_env()
    uvicorn.run(create_app(settings=_settings), host=_settings.host, port=_settings.port)

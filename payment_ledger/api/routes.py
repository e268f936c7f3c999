from fastapi import APIRouter, Depends, Query, Response, status

from ..core.dependencies import get_account_service, get_transfer_engine
from ..models import (
    AccountCreate,
    AccountExistsResponse,
    AccountPage,
    AccountResponse,
    TransferRecordResponse,
    TransferRequest,
    TransferResponse,
)
from ..services import AccountService, TransferEngine


router = APIRouter(prefix="/api/accounts", tags=["accounts"])

@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.create_account(payload)

@router.get("", response_model=AccountPage)
def list_accounts(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=100),
    sort: str = "createdAt,desc",
    service: AccountService = Depends(get_account_service),
) -> AccountPage:
    return service.list_accounts(page=page, size=size, sort=sort)

@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    service: AccountService = Depends(get_account_service),
) -> AccountResponse:
    return service.get_account(account_id)

@router.get("/{account_id}/exists", response_model=AccountExistsResponse)
def account_exists(
    account_id: str,
    service: AccountService = Depends(get_account_service),
) -> AccountExistsResponse:
    return AccountExistsResponse(exists=service.account_exists(account_id))

@router.get("/{account_id}/transactions", response_model=list[TransferRecordResponse])
def list_account_transactions(
    account_id: str,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    service: AccountService = Depends(get_account_service),
) -> list[TransferRecordResponse]:
    return service.list_transactions(account_id, limit=limit, offset=offset)

@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_account(
    account_id: str,
    service: AccountService = Depends(get_account_service),
) -> Response:
    service.delete_account(account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

transfer_router = APIRouter(prefix="/api/transfers", tags=["transfers"])

@transfer_router.post("", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def create_transfer(
    payload: TransferRequest,
    engine: TransferEngine = Depends(get_transfer_engine),
) -> TransferResponse:
    result = engine.transfer(payload).unwrap()
    return TransferResponse(
        transaction_id=result.transaction_id,
        status=result.status,
        message="Transfer completed successfully",
        timestamp=result.timestamp,
        from_account_id=result.from_account_id,
        to_account_id=result.to_account_id,
        amount=result.amount,
    )

@transfer_router.get("/health")
def transfer_health() -> dict[str, str]:
    return {"status": "UP", "service": "Payment Transfer Service"}

__all__ = ["router", "transfer_router"]

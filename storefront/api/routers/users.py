from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import current_user_id, http_error
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import ActivityOut, UserCreate, UserRead
from storefront.services.order_service import OrderService
from storefront.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])

@router.post("", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.create_user(payload)

@router.get("/me/activity", response_model=ActivityOut)
def my_activity(user_id: int = Depends(current_user_id), db: Session = Depends(get_db)):
    return OrderService(db).purchase_activity(user_id)

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    try:
        return service.get_user(user_id)
    except StorefrontError as e:
        raise http_error(e)

# storefront/repos/user_repo.py
from sqlalchemy.orm import Session
from storefront.data.models.user import UserModel


class UserRepo:
    """Katalog uzytkownikow: id -> konto z flaga is_admin."""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: int) -> UserModel | None:
        # swiezy odczyt, flaga is_admin moze sie zmienic
        return self.db.get(UserModel, user_id, populate_existing=True)

    def create_user(self, user: UserModel) -> UserModel:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

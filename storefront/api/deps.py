# storefront/api/deps.py
from fastapi import Header, HTTPException

from storefront.domain.errors import StorefrontError


def current_user_id(x_user_id: int | None = Header(None, alias="X-User-Id")) -> int:
    """
    Uzytkownik jest juz uwierzytelniony przez gateway, ktory przekazuje
    jego id w naglowku X-User-Id. Tutaj tylko go odczytujemy.
    """
    if x_user_id is None or x_user_id <= 0:
        raise HTTPException(
            status_code=401,
            detail={"error": "Unauthenticated", "message": "Brak identyfikatora uzytkownika"},
        )
    return x_user_id


def http_error(e: StorefrontError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.to_detail())

from fastapi import HTTPException, status


class StoreError(HTTPException):
    """HTTP error with a fixed, user-facing Spanish message."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Error en la solicitud"

    def __init__(self):
        super().__init__(status_code=self.status_code, detail=self.message)


class NotFoundError(StoreError):
    status_code = status.HTTP_404_NOT_FOUND


class EmailAlreadyExists(StoreError):
    message = "Este correo ya está registrado"


class InvalidCredentials(StoreError):
    message = "Contraseña incorrecta"


class UserNotFound(NotFoundError):
    message = "Usuario no encontrado"


class ProductNotFound(NotFoundError):
    message = "Producto no encontrado"


class VariantNotFound(NotFoundError):
    message = "Variante no encontrada"


class CategoryNotFound(NotFoundError):
    message = "Categoría no encontrada"


class CartItemNotFound(NotFoundError):
    message = "Item no encontrado"


class OrderNotFound(NotFoundError):
    message = "Orden no encontrada"


class AddressNotFound(NotFoundError):
    message = "Dirección no encontrada"


class InsufficientStock(HTTPException):
    """Carries the available quantity so the client can clamp its input."""

    def __init__(self, available: int):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": f"Stock insuficiente. Solo hay {available} unidades disponibles.",
                "errors": [{"availableStock": available}],
            },
        )

"""
Errores del flujo de pedidos.

Cada error lleva el codigo HTTP con el que se responde; main.py registra un
unico manejador para todos ellos.
"""


class OrderWorkflowError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderWorkflowError):
    """Falta un dato obligatorio o no es valido."""
    status_code = 400


class NotFoundError(OrderWorkflowError):
    status_code = 404


class AuthorizationError(OrderWorkflowError):
    """El pedido pertenece a otro usuario."""
    status_code = 403


class PersistenceError(OrderWorkflowError):
    status_code = 500


class RenderError(OrderWorkflowError):
    status_code = 500


class DispatchError(OrderWorkflowError):
    """Fallo del transporte SMTP al enviar el albaran."""
    status_code = 500

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload, noload

from pedidos.errors import AuthorizationError, NotFoundError, PersistenceError, ValidationError
from pedidos.models.orders import Order, OrderLine
from pedidos.models.product import Product
from pedidos.models.user import User
from pedidos.schemas.order import OrderCreate, OrderLineCreate, OrderOut
from pedidos.schemas.user import UserOut
from pedidos.services.albaran import albaran_filename, build_albaran
from pedidos.services.mailer import Mailer

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class CreatedOrder:
    order: OrderOut
    email_sent: bool


@dataclass(frozen=True)
class DeliveryNote:
    filename: str
    content: bytes


def to_cents(amount) -> Decimal:
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_total(lines: Iterable) -> Decimal:
    """
    Total del pedido: suma de cantidad x precio de cada linea. El precio de
    cada linea se redondea a centimos antes de multiplicar, igual que se guarda.
    """
    total = sum((to_cents(line.price) * line.quantity for line in lines), Decimal("0"))
    return to_cents(total)


def parse_id(value: Union[int, str, None], message: str) -> int:
    """Convierte un id de ruta o query a entero positivo; si no se puede, ValidationError."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(message)
    if parsed <= 0:
        raise ValidationError(message)
    return parsed

# ---------- Consultas ----------

async def get_order_with_lines(db: AsyncSession, order_id: int) -> Optional[OrderOut]:
    try:
        result = await db.execute(
            select(Order).options(joinedload(Order.lines)).where(Order.id == order_id)
        )
        order = result.unique().scalar_one_or_none()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Error al obtener el pedido: {e}") from e
    return OrderOut.model_validate(order) if order else None


async def get_user(db: AsyncSession, user_id: int) -> Optional[UserOut]:
    try:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Error al obtener el usuario: {e}") from e
    return UserOut.model_validate(user) if user else None


async def _catalog_names(db: AsyncSession, lines: List[OrderLineCreate]) -> dict:
    product_ids = {line.product_id for line in lines}
    result = await db.execute(select(Product.id, Product.name).where(Product.id.in_(sorted(product_ids))))
    names = {row.id: row.name for row in result}
    missing = sorted(product_ids - set(names))
    if missing:
        raise ValidationError(f"Productos no encontrados: {', '.join(str(p) for p in missing)}")
    return names

# ---------- Flujo ----------

async def create_order(db: AsyncSession, payload: OrderCreate, mailer: Mailer) -> CreatedOrder:
    parse_id(payload.user_id, "Usuario no especificado")
    if not payload.lines:
        raise ValidationError("El pedido debe contener al menos un producto")

    logger.info(f"Creando pedido para usuario {payload.user_id} con {len(payload.lines)} líneas")

    try:
        names = await _catalog_names(db, payload.lines)
        new_order = Order(
            user_id=payload.user_id,
            order_date=date.today(),
            total=compute_total(payload.lines),
            lines=[
                OrderLine(
                    product_id=line.product_id,
                    color=line.color,
                    quantity=line.quantity,
                    price=to_cents(line.price),
                    name=line.name or names[line.product_id],
                )
                for line in payload.lines
            ],
        )
        db.add(new_order)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error al crear pedido: {e}", exc_info=True)
        raise PersistenceError(f"Error al crear el pedido: {e}") from e

    order = OrderOut.model_validate(new_order)
    logger.info(f"Pedido creado con ID {order.id}")

    user = await get_user(db, order.user_id)
    if not user:
        logger.warning(f"No se encontró información del usuario {order.user_id}")

    pdf_bytes = await build_albaran(order, order.lines, user)

    email_sent = False
    if user and user.email:
        email_sent = await mailer.send_delivery_note(order, order.lines, user, pdf_bytes)
    else:
        logger.warning(f"No se envía el albarán del pedido {order.id}: usuario sin email configurado")

    return CreatedOrder(order=order, email_sent=email_sent)


async def list_orders_for_user(db: AsyncSession, user_id: Union[int, str, None], include_lines: bool = True) -> List[OrderOut]:
    user_id = parse_id(user_id, "Usuario no especificado")

    loader = joinedload(Order.lines) if include_lines else noload(Order.lines)
    try:
        result = await db.execute(
            select(Order)
            .options(loader)
            .where(Order.user_id == user_id)
            .order_by(Order.order_date.desc(), Order.id.desc())
        )
        orders = result.unique().scalars().all()
    except SQLAlchemyError as e:
        raise PersistenceError(f"Error al obtener los pedidos: {e}") from e
    return [OrderOut.model_validate(order) for order in orders]


async def fetch_delivery_note(db: AsyncSession, order_id: Union[int, str, None], requesting_user_id: Union[int, str, None] = None) -> DeliveryNote:
    order_id = parse_id(order_id, "ID de pedido no especificado")
    if requesting_user_id is not None:
        requesting_user_id = parse_id(requesting_user_id, "Usuario no válido")

    order = await get_order_with_lines(db, order_id)
    if not order:
        raise NotFoundError("Pedido no encontrado")
    if requesting_user_id is not None and order.user_id != requesting_user_id:
        raise AuthorizationError("No tienes permiso para acceder a este pedido")

    user = await get_user(db, order.user_id)
    pdf_bytes = await build_albaran(order, order.lines, user)
    return DeliveryNote(filename=albaran_filename(order.id), content=pdf_bytes)


async def resend_delivery_note(db: AsyncSession, order_id: Union[int, str, None], mailer: Mailer) -> None:
    order_id = parse_id(order_id, "ID de pedido no especificado")

    order = await get_order_with_lines(db, order_id)
    if not order:
        raise NotFoundError("Pedido no encontrado")

    user = await get_user(db, order.user_id)
    if not user or not user.email:
        raise ValidationError("Usuario sin email configurado")

    logger.info(f"Reenviando albarán del pedido {order.id}")
    pdf_bytes = await build_albaran(order, order.lines, user)
    await mailer.send_delivery_note_or_raise(order, order.lines, user, pdf_bytes)

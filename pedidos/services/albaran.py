"""
Generacion del albaran (nota de entrega) en PDF.

El documento se construye en memoria y se devuelve como bytes; nunca se
escribe en disco.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Sequence

import anyio
from fpdf import FPDF
from fpdf.enums import XPos, YPos

from pedidos.errors import RenderError
from pedidos.schemas.order import OrderOut, OrderLineOut
from pedidos.schemas.user import UserOut

logger = logging.getLogger(__name__)

UNKNOWN_CUSTOMER = "Desconocido"
DEFAULT_PRODUCT_NAME = "Producto"


def format_money(amount: Decimal) -> str:
    return f"{Decimal(amount):.2f} EUR"


def albaran_filename(order_id: int) -> str:
    return f"Albaran_{order_id}.pdf"


def albaran_text_lines(order: OrderOut, lines: Sequence[OrderLineOut], user: Optional[UserOut]) -> List[str]:
    """
    Texto del cuerpo del albaran, una entrada por renglon (sin el titulo).
    """
    customer = (user.full_name if user else "") or UNKNOWN_CUSTOMER
    rows = [
        f"Pedido ID: {order.id}",
        f"Fecha: {order.order_date.strftime('%d/%m/%Y')}",
        f"Cliente: {customer}",
    ]
    for line in lines:
        rows.append(
            f"Producto: {line.name or DEFAULT_PRODUCT_NAME} x{line.quantity} ({format_money(line.price)})"
        )
    rows.append(f"Total: {format_money(order.total)}")
    return rows


def _latin1(text: str) -> str:
    # las fuentes base del PDF solo cubren Latin-1
    return text.encode("latin-1", "replace").decode("latin-1")


def render_albaran(order: OrderOut, lines: Sequence[OrderLineOut], user: Optional[UserOut], compress: bool = True) -> bytes:
    pdf = FPDF(format="A4")
    pdf.set_compression(compress)
    pdf.set_auto_page_break(auto=True, margin=20)
    pdf.set_title(_latin1(f"Albaran pedido {order.id}"))
    pdf.add_page()

    pdf.set_font("Helvetica", style="B", size=18)
    pdf.cell(0, 12, _latin1("Albarán de Pedido"), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    pdf.set_font("Helvetica", size=12)
    rows = albaran_text_lines(order, lines, user)
    # la ultima fila es el total, separada del detalle
    for row in rows[:-1]:
        pdf.cell(0, 10, _latin1(row), new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(6)
    pdf.set_font("Helvetica", style="B", size=12)
    pdf.cell(0, 10, _latin1(rows[-1]), new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return bytes(pdf.output())


async def build_albaran(order: OrderOut, lines: Sequence[OrderLineOut], user: Optional[UserOut]) -> bytes:
    """
    Renderiza el albaran en un hilo aparte para no bloquear el loop.
    Cualquier fallo del renderizado se convierte en RenderError.
    """
    try:
        pdf_bytes = await anyio.to_thread.run_sync(render_albaran, order, lines, user)
    except Exception as e:
        logger.error(f"Error generando albaran del pedido {order.id}: {e}", exc_info=True)
        raise RenderError(f"Error al generar el albarán: {e}") from e
    logger.debug(f"Albaran del pedido {order.id} generado ({len(pdf_bytes)} bytes)")
    return pdf_bytes

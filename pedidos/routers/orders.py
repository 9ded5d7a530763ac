from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession
from pedidos.database import get_db
from pedidos.schemas.order import OrderCreate, OrderOut
from pedidos.services import orders as order_service
from pedidos.services.mailer import Mailer, get_mailer
from typing import Any, Dict, Optional

router = APIRouter(prefix="/orders")

# ---------- Helpers ----------

def format_order_response(order: OrderOut, include_lines: bool = True) -> Dict[str, Any]:
    data = {
        "id": order.id,
        "userId": order.user_id,
        "date": order.order_date.isoformat(),
        "total": float(order.total),
    }
    if include_lines:
        data["lines"] = [
            {
                "id": line.id,
                "productId": line.product_id,
                "name": line.name,
                "color": line.color,
                "quantity": line.quantity,
                "price": float(line.price),
                "subtotal": float(line.subtotal),
            } for line in order.lines
        ]
    return data

# ---------- Endpoints ----------

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(payload: OrderCreate, db: AsyncSession = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    created = await order_service.create_order(db, payload, mailer)
    return JSONResponse(
        content={
            "success": True,
            "message": "Pedido creado exitosamente",
            "order": format_order_response(created.order),
            "emailSent": created.email_sent,
        },
        status_code=status.HTTP_201_CREATED,
    )

@router.get("/user/{user_id}")
async def get_user_orders(
    user_id: str,
    include_lines: bool = Query(True, alias="includeLines"),
    db: AsyncSession = Depends(get_db),
):
    orders = await order_service.list_orders_for_user(db, user_id, include_lines=include_lines)
    return JSONResponse(
        content=[format_order_response(o, include_lines=include_lines) for o in orders],
        status_code=200,
    )

@router.get("/albaran/{order_id}")
async def download_albaran(
    order_id: str,
    user_id: Optional[str] = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    note = await order_service.fetch_delivery_note(db, order_id, requesting_user_id=user_id)
    return Response(
        content=note.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{note.filename}"'},
    )

@router.post("/reenviar-albaran/{order_id}")
async def resend_albaran(order_id: str, db: AsyncSession = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    await order_service.resend_delivery_note(db, order_id, mailer)
    return JSONResponse(content={"success": True, "message": "Albarán enviado exitosamente"}, status_code=200)

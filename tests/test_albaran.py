from datetime import date
from decimal import Decimal

import pytest

from pedidos.errors import RenderError
from pedidos.schemas.order import OrderLineOut, OrderOut
from pedidos.schemas.user import UserOut
from pedidos.services import albaran
from pedidos.services.albaran import albaran_filename, albaran_text_lines, build_albaran, render_albaran


@pytest.fixture
def order():
    lines = [
        OrderLineOut(id=1, order_id=3, product_id=1, color="Negro", quantity=2, price=Decimal("10.50"), name="Camiseta"),
        OrderLineOut(id=2, order_id=3, product_id=2, color=None, quantity=1, price=Decimal("5.00"), name=None),
    ]
    return OrderOut(id=3, user_id=7, order_date=date(2024, 3, 9), total=Decimal("26.00"), lines=lines)


@pytest.fixture
def user():
    return UserOut(id=7, name="Lucía", last_name="Pérez", email="lucia@example.com")


def test_text_lines_contain_order_fields(order, user):
    rows = albaran_text_lines(order, order.lines, user)

    assert rows[0] == "Pedido ID: 3"
    assert "Fecha: 09/03/2024" in rows
    assert "Cliente: Lucía Pérez" in rows
    assert "Producto: Camiseta x2 (10.50 EUR)" in rows
    assert "Producto: Producto x1 (5.00 EUR)" in rows
    assert rows[-1] == "Total: 26.00 EUR"


def test_text_lines_without_user(order):
    rows = albaran_text_lines(order, order.lines, None)

    assert "Cliente: Desconocido" in rows


def test_render_returns_pdf_bytes(order, user):
    pdf_bytes = render_albaran(order, order.lines, user)

    assert isinstance(pdf_bytes, bytes)
    assert pdf_bytes.startswith(b"%PDF-")


def test_render_handles_many_lines_and_unicode(order):
    many = [
        OrderLineOut(product_id=1, quantity=1, price=Decimal("1.00"), name=f"Producto 漢字 Łódź {i}")
        for i in range(150)
    ]
    big = order.model_copy(update={"lines": many, "total": Decimal("150.00")})
    customer = UserOut(id=9, name="Zoë 🎨")

    pdf_bytes = render_albaran(big, big.lines, customer)

    assert pdf_bytes.startswith(b"%PDF-")
    assert len(pdf_bytes) > len(render_albaran(order, order.lines, customer))


def test_albaran_filename():
    assert albaran_filename(15) == "Albaran_15.pdf"


@pytest.mark.asyncio
async def test_build_albaran_wraps_failures(order, user, monkeypatch):
    def broken(*args):
        raise RuntimeError("fuente no disponible")

    monkeypatch.setattr(albaran, "render_albaran", broken)

    with pytest.raises(RenderError, match="fuente no disponible"):
        await build_albaran(order, order.lines, user)


def test_render_writes_every_row_into_the_pdf(order, user):
    pdf_bytes = render_albaran(order, order.lines, user, compress=False)

    assert b"Pedido ID: 3" in pdf_bytes
    # los parentesis van escapados dentro del texto PDF
    assert rb"Producto: Camiseta x2 \(10.50 EUR\)" in pdf_bytes
    assert rb"Producto: Producto x1 \(5.00 EUR\)" in pdf_bytes
    assert b"Total: 26.00 EUR" in pdf_bytes

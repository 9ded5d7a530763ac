"""
Envio del albaran por correo.

El transporte es SMTP (smtplib) y se ejecuta en un hilo aparte. El mismo envio
se ofrece con dos contratos:

- send_delivery_note: tolerante, devuelve False si no se pudo enviar.
- send_delivery_note_or_raise: estricto, lanza ValidationError / DispatchError.
"""
import logging
import os
import smtplib
from datetime import date
from decimal import Decimal
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.header import Header
from email.utils import formataddr
from html import escape
from typing import Callable, Optional, Sequence

import anyio
from dotenv import load_dotenv

from pedidos.errors import DispatchError, ValidationError
from pedidos.schemas.order import OrderOut, OrderLineOut
from pedidos.schemas.user import UserOut

load_dotenv()

logger = logging.getLogger(__name__)


def attachment_filename(order_id: int) -> str:
    return f"Albaran_Pedido_{order_id}.pdf"


def build_delivery_note_html(order: OrderOut, lines: Sequence[OrderLineOut], user: UserOut, shop_name: str) -> str:
    cell = "padding: 12px; border-bottom: 1px solid #eee;"
    rows = []
    for line in lines:
        rows.append(f"""
        <tr>
          <td style="{cell}">{escape(line.name or 'Producto')}</td>
          <td style="{cell} text-align: center;">{escape(line.color or 'N/A')}</td>
          <td style="{cell} text-align: center;">{line.quantity}</td>
          <td style="{cell} text-align: right;">€{line.price:.2f}</td>
          <td style="{cell} text-align: right; font-weight: bold;">€{line.subtotal:.2f}</td>
        </tr>""")

    customer = escape(user.name or "Cliente")
    fecha = (order.order_date or date.today()).strftime("%d/%m/%Y")
    total = Decimal(order.total)

    return f"""<!DOCTYPE html>
<html lang="es">
<head>
  <meta charset="UTF-8">
  <title>Confirmación de Pedido</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
  <table width="600" cellpadding="0" cellspacing="0" align="center" style="background-color: white;">
    <tr>
      <td style="background-color: #52667a; padding: 30px 20px; text-align: center;">
        <h1 style="color: white; margin: 0;">{escape(shop_name)}</h1>
        <p style="color: white; margin: 10px 0 0 0;">Confirmación de Pedido</p>
      </td>
    </tr>
    <tr>
      <td style="padding: 30px 20px 20px 20px;">
        <h2 style="color: #333;">¡Hola {customer}!</h2>
        <p style="color: #666;">Gracias por tu compra. Hemos recibido tu pedido correctamente y lo estamos procesando.</p>
      </td>
    </tr>
    <tr>
      <td style="padding: 0 20px 20px 20px;">
        <table width="100%" cellpadding="10" style="background-color: #f9f9f9;">
          <tr><td><strong>Número de Pedido:</strong></td><td style="text-align: right;">#{order.id}</td></tr>
          <tr><td><strong>Fecha:</strong></td><td style="text-align: right;">{fecha}</td></tr>
          <tr><td><strong>Total:</strong></td><td style="text-align: right; font-weight: bold;">€{total:.2f}</td></tr>
        </table>
      </td>
    </tr>
    <tr>
      <td style="padding: 0 20px 20px 20px;">
        <h3 style="color: #333;">Detalle del Pedido</h3>
        <table width="100%" cellpadding="0" cellspacing="0" style="border: 1px solid #eee;">
          <thead>
            <tr style="background-color: #52667a; color: white;">
              <th style="padding: 12px; text-align: left;">Producto</th>
              <th style="padding: 12px;">Color</th>
              <th style="padding: 12px;">Cant.</th>
              <th style="padding: 12px; text-align: right;">Precio</th>
              <th style="padding: 12px; text-align: right;">Subtotal</th>
            </tr>
          </thead>
          <tbody>{''.join(rows)}
          </tbody>
        </table>
      </td>
    </tr>
    <tr>
      <td style="padding: 0 20px 20px 20px;">
        <h3 style="color: #333;">Dirección de Envío</h3>
        <div style="background-color: #f9f9f9; padding: 15px; color: #666;">
          <strong>{customer}</strong><br>
          {escape(user.address or 'Dirección no especificada')}<br>
          {escape(user.city or 'Ciudad')}, {escape(user.postal_code or 'CP')}
        </div>
      </td>
    </tr>
    <tr>
      <td style="padding: 0 20px 30px 20px;">
        <p style="margin: 0; color: #333;"><strong>Albarán adjunto:</strong> encontrarás el albarán detallado en formato PDF adjunto a este correo.</p>
      </td>
    </tr>
    <tr>
      <td style="background-color: #f9f9f9; padding: 20px; text-align: center;">
        <p style="margin: 0; color: #999; font-size: 12px;">© {date.today().year} {escape(shop_name)} - Todos los derechos reservados</p>
      </td>
    </tr>
  </table>
</body>
</html>"""


class Mailer:
    """
    Cliente SMTP para los albaranes.

    Construirlo no abre conexiones; initialize() verifica la configuracion una
    vez al arrancar el proceso y close() se llama al apagarlo.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: Optional[str],
        password: Optional[str],
        from_name: str = "Saturnina",
        use_tls: bool = True,
        timeout: float = 30,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory
        self.ready = False

    @classmethod
    def from_env(cls) -> "Mailer":
        return cls(
            host=os.getenv("EMAIL_HOST", "smtp.gmail.com"),
            port=int(os.getenv("EMAIL_PORT", "587")),
            user=os.getenv("EMAIL_USER"),
            password=os.getenv("EMAIL_PASSWORD"),
            from_name=os.getenv("EMAIL_FROM_NAME", "Saturnina"),
            use_tls=os.getenv("EMAIL_USE_TLS", "true").lower() in ("1", "true", "yes"),
        )

    # ---------- Ciclo de vida ----------

    def _connect(self) -> smtplib.SMTP:
        server = self.smtp_factory(self.host, self.port, timeout=self.timeout)
        if self.use_tls:
            server.starttls()
        if self.user and self.password:
            server.login(self.user, self.password)
        return server

    def initialize(self) -> bool:
        """Verifica el servidor SMTP. No lanza: solo deja constancia en el log."""
        if not self.user:
            logger.warning("EMAIL_USER no configurado: no se enviarán albaranes por email")
            self.ready = False
            return False
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Error en la configuración de email ({self.host}:{self.port}, usuario {self.user}): {e}")
            self.ready = False
            return False
        self.ready = True
        logger.info(f"Servidor de email listo para enviar mensajes como {self.user}")
        return True

    def close(self) -> None:
        self.ready = False
        logger.info("Cliente de email cerrado")

    # ---------- Envio ----------

    def build_message(self, order: OrderOut, lines: Sequence[OrderLineOut], user: UserOut, pdf_bytes: bytes) -> MIMEMultipart:
        message = MIMEMultipart("mixed")
        message["From"] = formataddr((self.from_name, self.user))
        message["To"] = user.email
        message["Subject"] = Header(f"Confirmación de Pedido #{order.id} - {self.from_name}", "utf-8")
        message.attach(MIMEText(build_delivery_note_html(order, lines, user, self.from_name), "html", "utf-8"))

        attachment = MIMEApplication(pdf_bytes, _subtype="pdf")
        attachment.add_header("Content-Disposition", "attachment", filename=attachment_filename(order.id))
        message.attach(attachment)
        return message

    def _send(self, message: MIMEMultipart) -> None:
        with self._connect() as server:
            server.send_message(message)

    async def send_delivery_note_or_raise(
        self, order: OrderOut, lines: Sequence[OrderLineOut], user: Optional[UserOut], pdf_bytes: bytes
    ) -> None:
        if not user or not user.email:
            raise ValidationError("Usuario sin email configurado")
        if not self.user:
            raise DispatchError("Remitente de email no configurado (EMAIL_USER)")

        message = self.build_message(order, lines, user, pdf_bytes)
        try:
            await anyio.to_thread.run_sync(self._send, message)
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(f"Error al enviar el albarán: {e}") from e
        logger.info(f"Albarán del pedido {order.id} enviado a {user.email}")

    async def send_delivery_note(
        self, order: OrderOut, lines: Sequence[OrderLineOut], user: Optional[UserOut], pdf_bytes: bytes
    ) -> bool:
        try:
            await self.send_delivery_note_or_raise(order, lines, user, pdf_bytes)
        except (ValidationError, DispatchError) as e:
            logger.error(f"No se pudo enviar el albarán del pedido {order.id}: {e.message}")
            return False
        return True


mailer = Mailer.from_env()

def get_mailer() -> Mailer:
    return mailer

from datetime import datetime
from html import escape

from app.core.config import settings

BRAND_COLOR = "#009be9"
BRAND_DARK = "#0077b6"

ORDER_STATUS_INFO = {
    "pending": {
        "label": "Pedido recibido",
        "color": "#0f766e",
        "bg_color": "#ccfbf1",
        "message": "Hemos recibido tu pedido y lo estamos procesando.",
        "step": 1,
    },
    "processing": {
        "label": "Preparando tu pedido",
        "color": "#1d4ed8",
        "bg_color": "#dbeafe",
        "message": "Estamos preparando tu pedido con cuidado.",
        "step": 2,
    },
    "shipped": {
        "label": "En camino",
        "color": "#7c3aed",
        "bg_color": "#ede9fe",
        "message": "Tu pedido está en camino hacia ti.",
        "step": 3,
    },
    "completed": {
        "label": "Entregado",
        "color": "#15803d",
        "bg_color": "#dcfce7",
        "message": "¡Tu pedido ha sido entregado con éxito!",
        "step": 4,
    },
    "cancelled": {
        "label": "Cancelado",
        "color": "#dc2626",
        "bg_color": "#fee2e2",
        "message": "Tu pedido ha sido cancelado.",
        "step": 0,
    },
}
STATUS_STEPS = ["pending", "processing", "shipped", "completed"]


def _money(value) -> str:
    return f"${float(value or 0):,.2f}"


def _layout(title: str, body: str) -> str:
    year = datetime.utcnow().year
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <style>
            body {{ margin: 0; padding: 0; background-color: #f4f4f4; font-family: Arial, sans-serif; }}
            .container {{ max-width: 600px; margin: 40px auto; background: #ffffff; border-radius: 10px; overflow: hidden; }}
            .header {{ background: linear-gradient(135deg, {BRAND_COLOR} 0%, {BRAND_DARK} 100%); color: #ffffff; padding: 30px; text-align: center; }}
            .content {{ padding: 40px 30px; color: #555555; line-height: 1.6; }}
            .button {{ background-color: {BRAND_COLOR}; color: #ffffff; text-decoration: none; padding: 15px 40px; border-radius: 8px; font-weight: bold; display: inline-block; }}
            table.items {{ width: 100%; border-collapse: collapse; margin: 20px 0; }}
            table.items th, table.items td {{ padding: 10px; text-align: left; border-bottom: 1px solid #eeeeee; }}
            .total {{ font-size: 18px; font-weight: bold; }}
            .footer {{ background-color: #f8f9fa; padding: 20px 30px; text-align: center; color: #999999; font-size: 12px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header">
                <h1 style="margin: 0;">FYTTSA</h1>
                <p style="margin: 5px 0 0;">{escape(title)}</p>
            </div>
            <div class="content">
                {body}
            </div>
            <div class="footer">© {year} FYTTSA. Todos los derechos reservados.</div>
        </div>
    </body>
    </html>
    """


def reset_password_template(reset_link: str) -> str:
    body = f"""
        <h2 style="color: #333333;">Restablecer contraseña</h2>
        <p>Recibimos una solicitud para restablecer la contraseña de tu cuenta.
        Haz clic en el botón de abajo para crear una nueva contraseña.</p>
        <p style="text-align: center; padding: 20px 0;">
            <a class="button" href="{escape(reset_link, quote=True)}">Restablecer contraseña</a>
        </p>
        <p>Este enlace expira en {settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES} minutos.
        Si no solicitaste este cambio, puedes ignorar este correo.</p>
    """
    return _layout("Uniformes Escolares", body)


def welcome_template(name: str) -> str:
    body = f"""
        <h2 style="color: #333333;">¡Hola {escape(name)}!</h2>
        <p>Gracias por crear tu cuenta en FYTTSA. Ya puedes guardar tus favoritos,
        administrar tus direcciones y dar seguimiento a tus pedidos.</p>
        <p style="text-align: center; padding: 20px 0;">
            <a class="button" href="{escape(settings.FRONTEND_URL, quote=True)}">Ir a la tienda</a>
        </p>
    """
    return _layout("¡Bienvenido!", body)


def order_confirmation_template(order_id: int, items, total, address=None) -> str:
    """HTML email for a freshly placed order.

    ``items`` are dicts with name, size, color_name, quantity and price;
    ``address`` is the snapshot stored on the order.
    """
    rows = ""
    for item in items:
        variant = " / ".join(
            escape(str(value)) for value in (item.get("size"), item.get("color_name")) if value
        )
        rows += f"""
            <tr>
                <td>{escape(item.get("name") or "")}{f" ({variant})" if variant else ""}</td>
                <td>{item.get("quantity")}</td>
                <td>{_money(item.get("price"))}</td>
                <td>{_money(float(item.get("price") or 0) * int(item.get("quantity") or 0))}</td>
            </tr>
        """

    address_html = ""
    if address:
        street = f"{address.get('street', '')} {address.get('exterior_number', '')}"
        if address.get("interior_number"):
            street += f" Int. {address['interior_number']}"
        address_html = f"""
            <h3>Dirección de envío</h3>
            <p>
                {escape(address.get("full_name") or "")}<br>
                {escape(street.strip())}<br>
                {escape(address.get("neighborhood") or "")}<br>
                {escape(address.get("city") or "")}, {escape(address.get("state") or "")} C.P. {escape(address.get("postal_code") or "")}<br>
                Tel. {escape(address.get("phone") or "")}
            </p>
        """

    body = f"""
        <p>¡Gracias por tu compra! Tu pedido <strong>#{order_id}</strong> ha sido recibido.</p>
        <table class="items">
            <thead>
                <tr><th>Producto</th><th>Cant.</th><th>Precio</th><th>Total</th></tr>
            </thead>
            <tbody>
                {rows}
            </tbody>
        </table>
        <p class="total">Total: {_money(total)}</p>
        {address_html}
    """
    return _layout("Confirmación de pedido", body)


def contact_form_template(name: str, email: str, phone: str, subject: str, message: str) -> str:
    body = f"""
        <h2 style="color: #333333;">Nuevo mensaje de contacto</h2>
        <p><strong>Nombre:</strong> {escape(name)}</p>
        <p><strong>Email:</strong> {escape(email)}</p>
        <p><strong>Teléfono:</strong> {escape(phone or "No proporcionado")}</p>
        <p><strong>Asunto:</strong> {escape(subject or "Sin asunto")}</p>
        <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; white-space: pre-wrap;">{escape(message)}</div>
    """
    return _layout("Formulario de contacto", body)


def contact_receipt_template(name: str) -> str:
    body = f"""
        <p>Hola <strong>{escape(name)}</strong>,</p>
        <p>Hemos recibido tu mensaje y te responderemos lo antes posible.
        Generalmente respondemos en menos de 24 horas hábiles.</p>
        <p style="color: #999999; font-size: 14px; margin-top: 30px;">
            Gracias por contactarnos,<br><strong>Equipo FYTTSA</strong>
        </p>
    """
    return _layout("¡Mensaje recibido!", body)


def order_status_update_template(order_id: int, status: str, customer_name: str) -> str:
    info = ORDER_STATUS_INFO.get(status, ORDER_STATUS_INFO["pending"])
    progress = 0 if status == "cancelled" else int((info["step"] - 1) / 3 * 100)

    steps_html = ""
    if status != "cancelled":
        cells = ""
        for index, step in enumerate(STATUS_STEPS, start=1):
            reached = index <= info["step"]
            color = info["color"] if reached else "#cbd5e1"
            cells += (
                f'<td style="text-align: center; font-size: 12px; color: {color};">'
                f'{ORDER_STATUS_INFO[step]["label"]}</td>'
            )
        steps_html = f"""
            <div style="background-color: #e2e8f0; border-radius: 4px; height: 8px;">
                <div style="width: {progress}%; background: #14b8a6; border-radius: 4px; height: 8px;"></div>
            </div>
            <table width="100%" style="margin-top: 10px;"><tr>{cells}</tr></table>
        """

    body = f"""
        <p style="font-size: 13px; color: #64748b; text-transform: uppercase;">Pedido #{order_id}</p>
        <h2 style="color: {info['color']}; background: {info['bg_color']}; padding: 12px; border-radius: 8px;">{info['label']}</h2>
        <p>Hola <strong>{escape(customer_name)}</strong>, {info['message']}</p>
        {steps_html}
    """
    return _layout("Actualización de pedido", body)

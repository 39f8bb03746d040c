import os
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from twilio.rest import Client
from config import DISPLAY_CURRENCY
import logging

logger = logging.getLogger(__name__)

# --- Email Configuration ---
SMTP_SERVER = os.getenv("SMTP_SERVER")
SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
EMAIL_SENDER = os.getenv("EMAIL_SENDER")

# --- Twilio Configuration ---
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")


def send_email(to_email: str, subject: str, body_html: str):
    """Sends an email using SMTP."""
    if not all([SMTP_SERVER, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, EMAIL_SENDER]):
        logger.error("SMTP settings are not fully configured. Cannot send email.")
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = EMAIL_SENDER
    message["To"] = to_email
    message.attach(MIMEText(body_html, "html"))

    try:
        with smtplib.SMTP(SMTP_SERVER, SMTP_PORT) as server:
            server.starttls()
            server.login(SMTP_USER, SMTP_PASSWORD)
            server.sendmail(EMAIL_SENDER, to_email, message.as_string())
        logger.info(f"Email sent successfully to {to_email}")
        return True
    except Exception as e:
        # Delivery failures never affect the order
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def send_sms(to_phone_number: str, body: str):
    """Sends an SMS using Twilio."""
    if not all([TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, TWILIO_PHONE_NUMBER]):
        logger.error("Twilio settings are not fully configured. Cannot send SMS.")
        return False

    try:
        client = Client(TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN)
        message = client.messages.create(
            body=body,
            from_=TWILIO_PHONE_NUMBER,
            to=to_phone_number
        )
        logger.info(f"SMS sent successfully to {to_phone_number}, SID: {message.sid}")
        return True
    except Exception as e:
        logger.error(f"Failed to send SMS to {to_phone_number}: {e}")
        return False


def format_amount(amount) -> str:
    return f"{amount} {DISPLAY_CURRENCY}"


def _items_html(items: list) -> str:
    rows = ""
    for item in items:
        rows += f"""
            <p>Listing #{item['listing_id']}: {item['quantity']} x {format_amount(item['price_at_purchase'])}</p>
        """
    return rows


# Email Templates
def get_order_received_email(order_data: dict, kind: str) -> tuple[str, str]:
    """Email to the seller when a new order arrives"""
    label = "Customer" if kind == "b2c" else "Business"
    total = order_data.get('total', order_data.get('total_price'))

    subject = f"New {label} Order - Order #{order_data['id']}"

    body = f"""
    <html>
    <body>
        <h2>New {label} Order!</h2>
        <p>Hello,</p>
        <p>You have received a new order with the following details:</p>

        <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px;">
            <h3>Order Details:</h3>
            <p><strong>Order ID:</strong> {order_data['id']}</p>
            {_items_html(order_data['items'])}
            <p><strong>Total Amount:</strong> {format_amount(total)}</p>
            <p><strong>Status:</strong> {order_data['status'].title()}</p>
        </div>

        <p>Thank you for selling with us!</p>
        <p>Best regards,<br>TierMarket Team</p>
    </body>
    </html>
    """

    return subject, body


def get_b2b_order_placed_email(order_data: dict) -> tuple[str, str]:
    """Confirmation email to a business buyer"""
    subject = f"Order Placed - Order #{order_data['id']}"

    body = f"""
    <html>
    <body>
        <h2>Order Placed!</h2>
        <p>Hello,</p>
        <p>Your order has been sent to the supplier:</p>

        <div style="background-color: #f5f5f5; padding: 15px; border-radius: 5px;">
            <h3>Order Details:</h3>
            <p><strong>Order ID:</strong> {order_data['id']}</p>
            {_items_html(order_data['items'])}
            <p><strong>Total Amount:</strong> {format_amount(order_data['total_price'])}</p>
        </div>

        <p>The amount will be invoiced once the supplier ships your order.</p>
        <p>Best regards,<br>TierMarket Team</p>
    </body>
    </html>
    """

    return subject, body


def get_order_status_email(order_data: dict) -> tuple[str, str]:
    """Status change email to a business buyer"""
    subject = f"Order #{order_data['id']} is now {order_data['status'].title()}"

    body = f"""
    <html>
    <body>
        <h2>Order Update</h2>
        <p>Hello,</p>
        <p>Your order #{order_data['id']} is now <strong>{order_data['status']}</strong>.</p>

        <p>Best regards,<br>TierMarket Team</p>
    </body>
    </html>
    """

    return subject, body


# SMS Templates
def get_b2c_order_placed_sms(order_data: dict) -> str:
    """Cash-on-delivery confirmation to the customer"""
    return f"Order #{order_data['id']} placed! Total {format_amount(order_data['total'])}, pay on delivery. - TierMarket"


def get_order_status_sms(order_data: dict) -> str:
    return f"Your order #{order_data['id']} is now {order_data['status']}. - TierMarket"

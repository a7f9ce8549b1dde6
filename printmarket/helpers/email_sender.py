"""
Email sending helper for PrintMarket
Transactional e-mails for auctions, offers and payments
"""
import os
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from flask import current_app


def send_email(to_email, subject, html_body, text_body=None):
    """
    Send an email using SMTP configuration from environment variables.

    Required environment variables:
    - SMTP_HOST: SMTP server hostname (e.g., smtp.gmail.com)
    - SMTP_PORT: SMTP server port (e.g., 587 for TLS, 465 for SSL)
    - SMTP_USER: SMTP username (email address)
    - SMTP_PASSWORD: SMTP password or app-specific password
    - SMTP_FROM_EMAIL: Email address to send from (defaults to SMTP_USER)
    - SMTP_FROM_NAME: Name to display as sender (defaults to "PrintMarket")

    Returns:
        (success: bool, error_message: str|None)
    """
    smtp_host = os.environ.get("SMTP_HOST")
    smtp_port = int(os.environ.get("SMTP_PORT", "587"))
    smtp_user = os.environ.get("SMTP_USER")
    smtp_password = os.environ.get("SMTP_PASSWORD")
    from_email = os.environ.get("SMTP_FROM_EMAIL", smtp_user)
    from_name = os.environ.get("SMTP_FROM_NAME", "PrintMarket")

    if not all([smtp_host, smtp_user, smtp_password]):
        return False, "Email not configured"

    try:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{from_name} <{from_email}>"
        msg['To'] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, 'plain'))
        msg.attach(MIMEText(html_body, 'html'))

        # SMTP_SSL for port 465, SMTP + starttls for 587/2525
        if smtp_port == 465:
            with smtplib.SMTP_SSL(smtp_host, smtp_port) as server:
                server.login(smtp_user, smtp_password)
                server.sendmail(from_email, to_email, msg.as_string())
        else:
            with smtplib.SMTP(smtp_host, smtp_port) as server:
                server.starttls()
                server.login(smtp_user, smtp_password)
                server.sendmail(from_email, to_email, msg.as_string())

        return True, None

    except smtplib.SMTPAuthenticationError:
        return False, "Email authentication failed"
    except (smtplib.SMTPException, OSError) as e:
        return False, f"Failed to send email: {str(e)}"


def format_money(amount):
    return f"${(amount or 0):,.2f}"


def _site_url(path):
    return f"{current_app.config.get('SITE_URL', '').rstrip('/')}{path}"


def _render(heading, paragraphs, rows=None, button=None):
    """
    Build (html, text) bodies from a heading, paragraphs and optional
    label/value rows and (label, url) button.
    """
    rows = rows or []

    rows_html = ""
    if rows:
        rows_html = '<table class="price-box">' + "".join(
            f'<tr><td>{escape(label)}</td><td class="amount">{escape(value)}</td></tr>'
            for label, value in rows
        ) + '</table>'

    button_html = ""
    if button:
        button_html = f'<p><a class="button" href="{escape(button[1])}">{escape(button[0])}</a></p>'

    html_body = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <meta charset="utf-8">
        <style>
            body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .logo {{ font-size: 24px; font-weight: bold; color: #1e3a8a; text-align: center; margin-bottom: 30px; }}
            .content {{ line-height: 1.6; color: #374151; }}
            .price-box {{ width: 100%; background: #f3f4f6; border: 1px solid #e5e7eb; border-radius: 8px; padding: 16px; margin: 24px 0; }}
            .amount {{ text-align: right; font-weight: bold; }}
            .button {{ display: inline-block; background: #1e3a8a; color: white; padding: 12px 24px; border-radius: 6px; text-decoration: none; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; font-size: 12px; color: #6b7280; text-align: center; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="logo">PrintMarket</div>
            <div class="content">
                <h2>{escape(heading)}</h2>
                {"".join(f"<p>{escape(p)}</p>" for p in paragraphs)}
                {rows_html}
                {button_html}
            </div>
            <div class="footer">
                <p>PrintMarket - the marketplace for print and mail equipment.</p>
            </div>
        </div>
    </body>
    </html>
    """

    text_lines = [heading, ""] + list(paragraphs)
    if rows:
        text_lines.append("")
        text_lines.extend(f"{label}: {value}" for label, value in rows)
    if button:
        text_lines.extend(["", f"{button[0]}: {button[1]}"])
    text_body = "\n".join(text_lines)

    return html_body, text_body


def send_auction_won_email(to, user_name, listing_title, invoice_id, winning_bid, total_amount, payment_due_date=None):
    html_body, text_body = _render(
        "Congratulations, you won!",
        [
            f"Hi {user_name or 'there'},",
            f'You won the auction for "{listing_title}".',
            f"Payment is due by {payment_due_date.isoformat()}." if payment_due_date else "Please complete payment soon.",
        ],
        rows=[("Winning bid", format_money(winning_bid)), ("Total due", format_money(total_amount))],
        button=("View invoice", _site_url(f"/dashboard/invoices/{invoice_id}")),
    )
    return send_email(to, f"You won: {listing_title}", html_body, text_body)


def send_auction_ended_seller_email(to, user_name, listing_title, listing_id, has_bids, winning_bid=0, buyer_name='', seller_payout=None, reason=None):
    if has_bids:
        paragraphs = [
            f"Hi {user_name or 'there'},",
            f'Your auction for "{listing_title}" sold to {buyer_name or "a buyer"}.',
        ]
        rows = [("Winning bid", format_money(winning_bid))]
        if seller_payout is not None:
            rows.append(("Your payout", format_money(seller_payout)))
        subject = f"Sold: {listing_title}"
    else:
        why = "the reserve price was not met" if reason == 'reserve_not_met' else "there were no bids"
        paragraphs = [
            f"Hi {user_name or 'there'},",
            f'Your auction for "{listing_title}" has ended without a sale because {why}.',
            "You can relist the item from your dashboard.",
        ]
        rows = []
        subject = f"Auction ended: {listing_title}"

    html_body, text_body = _render(
        "Your auction has ended", paragraphs, rows,
        button=("View listing", _site_url(f"/dashboard/listings/{listing_id}/edit")),
    )
    return send_email(to, subject, html_body, text_body)


def send_offer_received_email(to, user_name, listing_title, listing_id, offer_amount, buyer_name, expires_at):
    html_body, text_body = _render(
        "New offer received",
        [
            f"Hi {user_name or 'there'},",
            f'{buyer_name or "A buyer"} made an offer on "{listing_title}".',
            f"The offer expires at {expires_at.strftime('%Y-%m-%d %H:%M')} UTC.",
        ],
        rows=[("Offer", format_money(offer_amount))],
        button=("Review offer", _site_url("/dashboard/offers")),
    )
    return send_email(to, f"New offer on {listing_title}", html_body, text_body)


def send_offer_accepted_email(to, user_name, listing_title, invoice_id, offer_amount, total_amount):
    html_body, text_body = _render(
        "Your offer was accepted",
        [
            f"Hi {user_name or 'there'},",
            f'Your offer on "{listing_title}" has been accepted. Please proceed to payment.',
        ],
        rows=[("Offer", format_money(offer_amount)), ("Total due", format_money(total_amount))],
        button=("Pay invoice", _site_url(f"/dashboard/invoices/{invoice_id}")),
    )
    return send_email(to, f"Offer accepted: {listing_title}", html_body, text_body)


def send_offer_declined_email(to, user_name, listing_title, listing_id, offer_amount):
    html_body, text_body = _render(
        "Your offer was declined",
        [
            f"Hi {user_name or 'there'},",
            f'Your offer of {format_money(offer_amount)} on "{listing_title}" was declined.',
        ],
        button=("View listing", _site_url(f"/listing/{listing_id}")),
    )
    return send_email(to, f"Offer declined: {listing_title}", html_body, text_body)


def send_outbid_email(to, user_name, listing_title, listing_id, your_bid, new_high_bid, end_time):
    html_body, text_body = _render(
        "You have been outbid",
        [
            f"Hi {user_name or 'there'},",
            f'Someone outbid you on "{listing_title}".',
            f"The auction ends at {end_time.strftime('%Y-%m-%d %H:%M')} UTC.",
        ],
        rows=[("Your bid", format_money(your_bid)), ("New high bid", format_money(new_high_bid))],
        button=("Bid again", _site_url(f"/listing/{listing_id}")),
    )
    return send_email(to, f"Outbid: {listing_title}", html_body, text_body)


def send_counter_offer_email(to, user_name, listing_title, original_amount, counter_amount, expires_at, is_buyer, counter_message=None):
    sender = "seller" if is_buyer else "buyer"
    paragraphs = [
        f"Hi {user_name or 'there'},",
        f'The {sender} countered on "{listing_title}".',
    ]
    if counter_message:
        paragraphs.append(f'Message: "{counter_message}"')
    paragraphs.append(f"The counter-offer expires at {expires_at.strftime('%Y-%m-%d %H:%M')} UTC.")

    html_body, text_body = _render(
        "Counter-offer received", paragraphs,
        rows=[("Previous amount", format_money(original_amount)), ("Counter-offer", format_money(counter_amount))],
        button=("Respond", _site_url("/dashboard/my-offers" if is_buyer else "/dashboard/offers")),
    )
    return send_email(to, f"Counter-offer on {listing_title}", html_body, text_body)


def send_receipt_email(to, user_name, invoice_number, listing_title, sale_amount, buyer_premium_percent,
                       buyer_premium_amount, total_amount, paid_at, seller_name):
    html_body, text_body = _render(
        "Payment receipt",
        [
            f"Hi {user_name or 'there'},",
            f'Thanks for your payment for "{listing_title}". {seller_name} will prepare your item for shipping.',
            f"Paid on {paid_at.strftime('%Y-%m-%d')}.",
        ],
        rows=[
            ("Invoice", invoice_number),
            ("Sale amount", format_money(sale_amount)),
            (f"Buyer premium ({buyer_premium_percent:g}%)", format_money(buyer_premium_amount)),
            ("Total paid", format_money(total_amount)),
        ],
    )
    return send_email(to, f"Receipt {invoice_number}", html_body, text_body)


def send_payment_received_seller_email(to, user_name, invoice_number, listing_title, sale_amount, seller_payout):
    html_body, text_body = _render(
        "Payment received",
        [
            f"Hi {user_name or 'there'},",
            f'The buyer paid invoice {invoice_number} for "{listing_title}". The item is ready to be shipped.',
        ],
        rows=[("Sale amount", format_money(sale_amount)), ("Your payout", format_money(seller_payout))],
        button=("View sales", _site_url("/dashboard/sales")),
    )
    return send_email(to, f"Payment received: {listing_title}", html_body, text_body)

# src/notify/email_content.py

"""Subject and body text for subscriber emails."""

import html as _html
from dataclasses import dataclass

from src.config.settings import Settings
from src.models.tracked_product import TrackedProduct
from src.services.notification_policy import NotificationKind

_TITLE_LIMIT = 40


@dataclass(frozen=True)
class EmailContent:
    """A rendered email, ready for the mailer."""

    subject: str
    body: str
    html: str


def _short_title(title: str) -> str:
    if len(title) <= _TITLE_LIMIT:
        return title
    return title[:_TITLE_LIMIT].rstrip() + "..."


def _price(product: TrackedProduct, value: float) -> str:
    return f"{product.currency}{value:,.2f}"


def _headline(
    product: TrackedProduct, kind: NotificationKind,
) -> tuple[str, list[str]]:
    """Return (subject tag, detail lines) for *kind*."""
    title = _short_title(product.title)
    now = _price(product, product.current_price)
    if kind is NotificationKind.WELCOME:
        return f"Welcome to price tracking for {title}", [
            f"You are now tracking {product.title}.",
            f"Current price: {now}",
            "We will email you when the price drops or it is back in stock.",
        ]
    if kind is NotificationKind.BACK_IN_STOCK:
        return f"{title} is now back in stock!", [
            f"{product.title} can be ordered again.",
            f"Current price: {now}",
        ]
    if kind is NotificationKind.LOWEST_PRICE:
        return f"Lowest price alert for {title}", [
            f"{product.title} just hit its lowest price so far.",
            f"Current price: {now}",
        ]
    if kind is NotificationKind.TARGET_PRICE:
        return f"Target price reached for {title}", [
            f"{product.title} dropped to your target price.",
            f"Current price: {now}",
        ]
    if kind is NotificationKind.PRICE_DROP:
        return f"Price drop for {title}", [
            f"{product.title} is cheaper than at the last check.",
            f"Current price: {now}",
            f"Average price: {_price(product, product.average_price)}",
        ]
    return f"Discount alert for {title}", [
        f"{product.title} is discounted by {product.discount_rate:.0f}%.",
        f"Current price: {now}",
    ]


def build_email(
    product: TrackedProduct, kind: NotificationKind,
) -> EmailContent:
    """Build the email announcing *kind* for *product*."""
    subject, lines = _headline(product, kind)

    plain = "\n".join(lines) + f"\n\nLink: {product.url}\n"

    li_html = "".join(
        "<li>{}</li>".format(_html.escape(line)) for line in lines
    )
    html = (
        "<html>"
        "<body>"
        "<h3>{subject}</h3>"
        "<ul>{lis}</ul>"
        '<p><a href="{url}">Open product page</a></p>'
        "</body>"
        "</html>"
    ).format(
        subject=_html.escape(subject),
        lis=li_html,
        url=_html.escape(product.url, quote=True),
    )

    return EmailContent(
        subject=f"{Settings.EMAIL_SUBJECT_PREFIX} {subject}".strip(),
        body=plain,
        html=html,
    )

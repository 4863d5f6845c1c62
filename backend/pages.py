"""HTML pages served by the watcher's small web surface."""

from html import escape

_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f9fafb; margin: 0; }
    .container { max-width: 480px; margin: 80px auto; background: white; border: 1px solid #e5e7eb; border-radius: 8px; padding: 32px; text-align: center; }
    .title { font-size: 22px; font-weight: 700; margin-bottom: 12px; }
    .message { color: #4b5563; font-size: 15px; line-height: 1.5; word-break: break-word; }
    .ok .title { color: #059669; }
    .error .title { color: #dc2626; }
"""


def _page(title: str, heading: str, body: str, css_class: str = "") -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Testflight Watcher | {escape(title)}</title>
    <style>{_STYLE}</style>
</head>
<body>
    <div class="container {css_class}">
        <div class="title">{escape(heading)}</div>
        <div class="message">{body}</div>
    </div>
</body>
</html>"""


def index_page() -> str:
    return _page(
        "Home",
        "Testflight Watcher",
        "This service watches TestFlight beta pages and sends a notification when a spot opens up.",
    )


def deleted_page(name: str, url: str) -> str:
    return _page(
        f"Success - {url} removed",
        "Success",
        f"The TestFlight URL for <b>{escape(name)}</b> ({escape(url)}) was <b>successfully</b> removed.",
        "ok",
    )


def invalid_token_page() -> str:
    return _page(
        "Error - Invalid token",
        "Invalid",
        "The one-time link is <b>invalid</b> or has expired.<br>Please check the link and try again.",
        "error",
    )


def server_error_page() -> str:
    return _page(
        "Error",
        "Error",
        "The link was accepted but the watch list could not be saved. Check the server logs.",
        "error",
    )

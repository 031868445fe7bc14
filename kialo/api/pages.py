"""Minimal HTML pages served by the plugin endpoints."""

import html
import json

from kialo.lti.flow import DeepLinkingResult
from kialo.lti.messages import LtiMessage

GENERIC_ERROR_TEXT = "Something went wrong. Please go back and try again."


def _document(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title>"
        "</head>\n"
        f"<body>\n{body}\n</body></html>"
    )


def loading_page(title: str, text: str, message: LtiMessage) -> str:
    """Show a short notice while the auto-submitting form redirects."""
    body = f"<p>{html.escape(text)}</p>\n{message.to_html_form()}"
    return _document(title, body)


def embed_page(title: str, message: LtiMessage) -> str:
    """Render the launch inside an iframe on the activity page."""
    src = f"{message.to_url()}&embedded"
    body = (
        f'<iframe id="kialocontentframe" height="600px" width="100%" '
        f'src="{html.escape(src)}" allowfullscreen="true"></iframe>'
    )
    return _document(title, body)


def deep_link_result_page(result: DeepLinkingResult) -> str:
    """Hand the selection back to the opener window and close on acknowledgement."""
    payload = json.dumps(
        {
            "type": "selected",
            "deployment_id": result.deployment_id,
            "discussion_url": result.discussion_url,
            "discussion_title": result.discussion_title,
        }
    ).replace("</", "<\\/")
    script = (
        "<script>\n"
        "window.addEventListener('message', (event) => {\n"
        "  if (event.data.type === 'acknowledged') { window.close(); }\n"
        "}, false);\n"
        f"window.opener.postMessage({payload}, '*');\n"
        "</script>"
    )
    notice = "<center>You can close this window now.</center>"
    return _document("Kialo", f"{script}\n{notice}")


def error_page(title: str, text: str = GENERIC_ERROR_TEXT) -> str:
    body = f"<h2>{html.escape(title)}</h2>\n<p>{html.escape(text)}</p>"
    return _document(title, body)

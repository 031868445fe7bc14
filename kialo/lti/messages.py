"""Outbound LTI messages rendered as auto-submitting forms or URLs."""

import html
from urllib.parse import urlencode

from pydantic import BaseModel

FORM_ID = "kialo-lti-form"


class LtiMessage(BaseModel):
    """A message for the browser to carry to ``url``."""

    url: str
    parameters: dict[str, str]

    def get(self, name: str) -> str | None:
        return self.parameters.get(name)

    def to_url(self) -> str:
        """Render as a GET URL with the parameters in the query string."""
        if not self.parameters:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(self.parameters)}"

    def to_html_form(self, auto_submit: bool = True) -> str:
        """Render as an HTML form posting the parameters to ``url``."""
        fields = "\n".join(
            f'  <input type="hidden" name="{html.escape(name)}" '
            f'value="{html.escape(value)}"/>'
            for name, value in self.parameters.items()
        )
        form = (
            f'<form id="{FORM_ID}" action="{html.escape(self.url)}" method="POST">\n'
            f"{fields}\n"
            "</form>"
        )
        if auto_submit:
            form += f'\n<script>document.getElementById("{FORM_ID}").submit();</script>'
        return form

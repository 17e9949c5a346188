"""XML documents for Jenkins folder credentials."""

from typing import Literal
from xml.sax.saxutils import escape

type CredentialKind = Literal["secret_text", "username_password"]

_ENTITIES = {'"': "&quot;", "'": "&#39;"}

SECRET_TEXT_TEMPLATE = """\
<org.jenkinsci.plugins.plaincredentials.impl.StringCredentialsImpl>
  <scope>GLOBAL</scope>
  <id>{id}</id>
  <description>Secret variable for {id}</description>
  <secret>{secret}</secret>
</org.jenkinsci.plugins.plaincredentials.impl.StringCredentialsImpl>"""

USERNAME_PASSWORD_TEMPLATE = """\
<com.cloudbees.plugins.credentials.impl.UsernamePasswordCredentialsImpl>
  <scope>GLOBAL</scope>
  <id>{id}</id>
  <description>Credentials for {id}</description>
  <username>{username}</username>
  <password>{password}</password>
</com.cloudbees.plugins.credentials.impl.UsernamePasswordCredentialsImpl>"""


def _xml(text: str) -> str:
    return escape(text, _ENTITIES)


def credential_xml(credential_id: str, secret: str, kind: CredentialKind) -> str:
    """Render a credential definition.

    Username/password secrets are given as ``"username:password"``; the
    password may itself contain colons.

    Raises:
        ValueError: If a username/password secret has no colon

    """
    if kind == "secret_text":
        return SECRET_TEXT_TEMPLATE.format(id=_xml(credential_id), secret=_xml(secret))

    username, separator, password = secret.partition(":")
    if not separator:
        raise ValueError(
            'Username/password credentials must be in format "username:password"'
        )
    return USERNAME_PASSWORD_TEMPLATE.format(
        id=_xml(credential_id), username=_xml(username), password=_xml(password)
    )

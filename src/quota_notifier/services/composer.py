"""Alert message composition.

The organization section (usage summary plus per-space breakdown) is rendered
once per organization and shared by all of its recipients; only the
salutation is personalised.
"""

from jinja2 import Environment, PackageLoader, StrictUndefined

from ..models.usage import OrgUsageSnapshot, Recipient
from ..utils.formatting import format_mb

_TEMPLATE_ENV: Environment | None = None


def _env() -> Environment:
    global _TEMPLATE_ENV
    if _TEMPLATE_ENV is None:
        _TEMPLATE_ENV = Environment(
            loader=PackageLoader("quota_notifier", "templates"),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
    return _TEMPLATE_ENV


class MessageComposer:
    """Renders plain-text alert bodies from a usage snapshot."""

    def __init__(
        self,
        sender_name: str,
        org_template: str = "org_summary.txt.j2",
        body_template: str = "notification.txt.j2",
    ):
        """
        Args:
            sender_name: Team name used to sign the message
            org_template: Template for the organization usage section
            body_template: Template for the full personalised body
        """
        self.sender_name = sender_name
        self._org_template = _env().get_template(org_template)
        self._body_template = _env().get_template(body_template)

    def render_org_section(self, snapshot: OrgUsageSnapshot) -> str:
        """Usage summary and space breakdown for one organization."""
        spaces = [
            {
                "name": space.name,
                "consumed_mb": space.consumed_mb,
                "percent": space.percent_of_quota(snapshot.memory_limit_mb),
            }
            for space in snapshot.spaces
        ]
        return self._org_template.render(
            org_name=snapshot.name,
            memory_used=format_mb(snapshot.memory_used_mb),
            memory_limit=format_mb(snapshot.memory_limit_mb),
            percent_used=snapshot.percent_used,
            spaces=spaces,
            app_count=snapshot.app_count,
            instance_count=snapshot.instance_count,
        )

    def compose(self, snapshot: OrgUsageSnapshot, recipient: Recipient, org_section: str | None = None) -> str:
        """
        Render the full body for one recipient.

        Args:
            snapshot: Usage snapshot of the alerting organization
            recipient: Recipient being addressed
            org_section: Pre-rendered organization section to reuse across
                recipients; rendered on demand when omitted
        """
        if org_section is None:
            org_section = self.render_org_section(snapshot)
        return self._body_template.render(
            salutation=recipient.given_name or recipient.display_name,
            org_name=snapshot.name,
            org_section=org_section,
            sender=self.sender_name,
        )

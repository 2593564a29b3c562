"""Built-in email templates and platform display names."""

from models.notification import EmailTemplate
from models.types import TemplateID

DEFAULT_TEMPLATES = [
    EmailTemplate(
        id=TemplateID("new-resources"),
        name="New Resources Available",
        subject="New Learning Resources Available - {PLATFORM_NAME}",
        body="""Hi there,

We've just synced {RESOURCE_COUNT} new learning resources from {PLATFORM_NAME}!

Here are some highlights:
{RESOURCE_LIST}

You can view and access these resources in your dashboard.

Best regards,
Compliance Digest Team""",
        category="resources",
        is_default=True,
    ),
    EmailTemplate(
        id=TemplateID("sync-failure"),
        name="Sync Failure Alert",
        subject="Learning Resource Sync Failed - {PLATFORM_NAME}",
        body="""Alert: Learning Resource Sync Issue

We encountered an issue while syncing learning resources from {PLATFORM_NAME}.

Error Details:
- Platform: {PLATFORM_NAME}
- Error: {ERROR_MESSAGE}
- Failed at: {SYNC_TIME}
- Resources affected: {RESOURCE_COUNT}

Please check your platform connection settings and try syncing again.

Compliance Digest Support""",
        category="alerts",
        is_default=True,
    ),
    EmailTemplate(
        id=TemplateID("resource-sync-success"),
        name="Resource Sync Success",
        subject="Learning Resources Synced - {PLATFORM_NAME}",
        body="""Hi there,

Your {PLATFORM_NAME} library finished syncing at {SYNC_TIME}.

{RESOURCE_COUNT} resources were added or refreshed:
{RESOURCE_LIST}

Best regards,
Compliance Digest Team""",
        category="sync",
        is_default=True,
    ),
    EmailTemplate(
        id=TemplateID("certification-available"),
        name="Certification Available",
        subject="New Certifications Available - {PLATFORM_NAME}",
        body="""Hi there,

{PLATFORM_NAME} has new certifications that count toward your compliance training:
{CERTIFICATION_LIST}

Enrol from your dashboard to add them to your learning path.

Best regards,
Compliance Digest Team""",
        category="resources",
        is_default=True,
    ),
    EmailTemplate(
        id=TemplateID("deadline-reminder"),
        name="Training Deadline Reminder",
        subject="Upcoming Training Deadlines - {PLATFORM_NAME}",
        body="""Reminder: Training Due Soon

The following {PLATFORM_NAME} training items are approaching their deadline:
{DEADLINE_LIST}

Please complete them before they fall due to stay compliant.

Compliance Digest Team""",
        category="reminders",
        is_default=True,
    ),
    EmailTemplate(
        id=TemplateID("scheduled-digest"),
        name="Scheduled Regulatory Digest",
        subject="{SCHEDULE_NAME} - {ITEM_COUNT} updates ({CRITICAL_COUNT} critical)",
        body="""{SCHEDULE_NAME}
Generated {RUN_DATE}

{DIGEST_BODY}

You received this email because you belong to a digest recipient group.""",
        category="digest",
        is_default=True,
    ),
]

PLATFORM_NAMES = {
    "coursera": "Coursera",
    "linkedin": "LinkedIn Learning",
    "complianceai": "ComplianceAI Academy",
    "iapp": "IAPP Training",
}


def platform_display_name(platform: str | None) -> str:
    """Human-readable platform name, falling back to the raw identifier."""
    if not platform:
        return "Unknown Platform"
    return PLATFORM_NAMES.get(platform, platform)

"""
Outreach Agent: personalized email writing.

Three operations share the Structured Extractor and its newline repair:

    generate_email      first-touch email from a contact profile + tone + purpose
    generate_follow_up  follow-up referencing the previous email
    improve_email       rewrite of an existing email per instructions

The requested tone and call-to-action are passed to the extractor as known
fields, so a reply carrying only subject and message still validates.
An unrepairable reply raises ExtractionError(kind="parse").
"""

import uuid
from typing import List, Optional, Sequence, Tuple

from coffee_agent.common.error_handling import SchemaValidationError, gather_branches
from coffee_agent.common.logger import get_logger
from coffee_agent.common.schemas import TONES, OutreachContact, OutreachMessage, SenderInfo
from coffee_agent.extraction.structured_extractor import StructuredExtractor

DEFAULT_TONE = "professional"
DEFAULT_PURPOSE = "Connect and explore potential collaboration"
DEFAULT_CALL_TO_ACTION = "Schedule a brief call to discuss how we can help"

JSON_FORMAT_RULES = """CRITICAL JSON FORMATTING REQUIREMENTS:
- You MUST return valid JSON that can be parsed by a JSON parser
- All newlines in the "message" field MUST be escaped as \\n (backslash followed by n)
- Do NOT use actual line breaks in JSON string values
- Escape all special characters: quotes as \\", backslashes as \\\\

Example of correct format:
{{
  "subject": "Example Subject Line",
  "message": "Dear John,\\n\\nThis is the first paragraph.\\n\\nBest regards,\\nYour Name",
  "tone": "{tone}",
  "callToAction": "{call_to_action}",
  "personalizationNotes": "Notes here"
}}

Return ONLY valid JSON, no markdown code blocks, no explanations, just the JSON object."""

TONE_GUIDELINES = """TONE GUIDELINES:
- Professional: Formal, business-focused, respectful
- Casual: Conversational, friendly but still professional
- Friendly: Warm, approachable, personable"""


def _check_tone(tone: str) -> str:
    if tone not in TONES:
        raise SchemaValidationError(f"tone must be one of: {', '.join(TONES)}", fields=["tone"])
    return tone


def _contact_lines(contact: OutreachContact, detailed: bool = True) -> List[str]:
    lines = [
        "CONTACT INFORMATION:",
        f"- Name: {contact.name}",
        f"- First Name: {contact.greeting_name}",
        f"- Company: {contact.company}",
        f"- Role: {contact.role}",
    ]
    if not detailed:
        return lines
    if contact.headline:
        lines.append(f"- Headline: {contact.headline}")
    if contact.location and contact.location.city:
        state = f", {contact.location.state}" if contact.location.state else ""
        lines.append(f"- Location: {contact.location.city}{state}")
    if contact.linkedin_url:
        lines.append(f"- LinkedIn: {contact.linkedin_url}")
    return lines


def _sender_lines(sender_info: Optional[SenderInfo]) -> List[str]:
    if sender_info is None:
        return []
    lines = ["SENDER INFORMATION:"]
    if sender_info.name:
        lines.append(f"- Name: {sender_info.name}")
    if sender_info.company:
        lines.append(f"- Company: {sender_info.company}")
    if sender_info.role:
        lines.append(f"- Role: {sender_info.role}")
    return lines if len(lines) > 1 else []


def _section(*blocks: List[str]) -> str:
    return "\n\n".join("\n".join(block) for block in blocks if block)


class OutreachAgent:
    """Email generation over the structured extractor."""

    def __init__(self, extractor: StructuredExtractor):
        self.extractor = extractor

    def build_email_prompt(
        self,
        contact: OutreachContact,
        tone: str,
        purpose: str,
        call_to_action: str,
        sender_info: Optional[SenderInfo] = None,
        additional_context: Optional[str] = None,
    ) -> str:
        requirements = [
            "EMAIL REQUIREMENTS:",
            f"- Tone: {tone}",
            f"- Purpose: {purpose}",
            f"- Call to Action: {call_to_action}",
        ]
        if additional_context:
            requirements.append(f"- Additional Context: {additional_context}")

        instructions = [
            "INSTRUCTIONS:",
            "1. Create a compelling subject line (5-8 words, specific and personalized)",
            "2. Write the email body with these elements:",
            "   - Personalized greeting using their first name",
            "   - Brief, relevant personalization (reference their role, company, or headline)",
            "   - Clear value proposition or reason for reaching out",
            f'   - Specific call to action: "{call_to_action}"',
            "   - Professional closing",
            "3. Keep the email concise (150-250 words)",
            f"4. Match the specified tone: {tone}",
            "5. Make it feel genuine and personalized, not templated",
            "6. Include personalization notes explaining what personalization elements you used",
        ]
        avoid = [
            "AVOID:",
            "- Generic templates or obvious copy-paste language",
            "- Being overly salesy or pushy",
            "- Making assumptions about their needs",
            "- Writing overly long emails",
        ]
        return _section(
            [
                "You are an expert email outreach writer. Create a personalized, compelling outreach email.",
                "IMPORTANT: You must return a valid JSON object. Use \\n for line breaks, not actual newlines.",
            ],
            _contact_lines(contact),
            _sender_lines(sender_info),
            requirements,
            instructions,
            TONE_GUIDELINES.splitlines(),
            avoid,
            JSON_FORMAT_RULES.format(tone=tone, call_to_action=call_to_action).splitlines(),
        )

    async def generate_email(
        self,
        contact: OutreachContact,
        tone: str = DEFAULT_TONE,
        purpose: str = DEFAULT_PURPOSE,
        sender_info: Optional[SenderInfo] = None,
        additional_context: Optional[str] = None,
        call_to_action: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> OutreachMessage:
        """
        Generate a first-touch outreach email.

        Raises:
            SchemaValidationError: unknown tone
            ExtractionError: reply could not be parsed (kind="parse") or validated
        """
        tone = _check_tone(tone)
        purpose = purpose or DEFAULT_PURPOSE
        call_to_action = call_to_action or DEFAULT_CALL_TO_ACTION
        logger = get_logger(__name__, run_id=run_id or uuid.uuid4().hex, component="outreach")

        logger.info(f"Generating {tone} email for {contact.name} at {contact.company}")
        prompt = self.build_email_prompt(
            contact, tone, purpose, call_to_action, sender_info, additional_context
        )
        message = await self.extractor.extract(
            prompt,
            OutreachMessage,
            known_fields={"tone": tone, "callToAction": call_to_action},
        )
        logger.info(f"Generated email: '{message.subject}' ({len(message.body)} chars)")
        return message

    async def generate_follow_up(
        self,
        contact: OutreachContact,
        previous_email: str,
        days_since_last: int,
        tone: str = DEFAULT_TONE,
        sender_info: Optional[SenderInfo] = None,
        additional_context: Optional[str] = None,
        call_to_action: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> OutreachMessage:
        """Generate a follow-up that references the previous email."""
        tone = _check_tone(tone)
        if not previous_email or not previous_email.strip():
            raise SchemaValidationError("previousEmail must be non-empty", fields=["previousEmail"])
        if days_since_last < 0:
            raise SchemaValidationError("daysSinceLast must be >= 0", fields=["daysSinceLast"])
        logger = get_logger(__name__, run_id=run_id or uuid.uuid4().hex, component="outreach")

        cta_line = (
            f"- Call to Action: {call_to_action}"
            if call_to_action
            else "- Include a clear, specific call to action"
        )
        requirements = [
            "FOLLOW-UP REQUIREMENTS:",
            f"- Tone: {tone}",
            "- This is a follow-up to the previous email",
            cta_line,
        ]
        if additional_context:
            requirements.append(f"- Additional Context: {additional_context}")

        prompt = _section(
            ["You are an expert email outreach writer. Create a personalized follow-up email."],
            _contact_lines(contact, detailed=False),
            [
                "CONTEXT:",
                f"- Days since last email: {days_since_last}",
                "- Previous email sent:",
                previous_email.strip(),
            ],
            _sender_lines(sender_info),
            requirements,
            [
                "INSTRUCTIONS:",
                "1. Create a subject line that references the previous email or adds new value",
                "2. Acknowledge you're following up and add new value; don't repeat the previous email",
                "3. Keep it even shorter than the initial email (100-150 words)",
                f"4. Match the specified tone: {tone}",
                "5. Be respectful and not pushy, and never passive-aggressive about a missing reply",
            ],
            JSON_FORMAT_RULES.format(
                tone=tone, call_to_action=call_to_action or "A clear next step"
            ).splitlines(),
        )

        known = {"tone": tone}
        if call_to_action:
            known["callToAction"] = call_to_action
        logger.info(f"Generating follow-up for {contact.name} ({days_since_last} days since last)")
        return await self.extractor.extract(prompt, OutreachMessage, known_fields=known)

    async def improve_email(
        self,
        original_email: str,
        improvements: str,
        tone: str = DEFAULT_TONE,
        run_id: Optional[str] = None,
    ) -> OutreachMessage:
        """Rewrite an existing email according to the requested improvements."""
        tone = _check_tone(tone)
        if not original_email or not original_email.strip():
            raise SchemaValidationError("originalEmail must be non-empty", fields=["originalEmail"])
        logger = get_logger(__name__, run_id=run_id or uuid.uuid4().hex, component="outreach")

        prompt = _section(
            ["You are an expert email editor. Improve the following email based on the requested changes."],
            ["ORIGINAL EMAIL:", original_email.strip()],
            ["REQUESTED IMPROVEMENTS:", improvements.strip() or "General polish"],
            [f"DESIRED TONE: {tone}"],
            [
                "INSTRUCTIONS:",
                "1. Rewrite the email incorporating the requested improvements",
                "2. Maintain the core message and intent",
                f"3. Match the specified tone: {tone}",
                "4. Create an appropriate subject line",
                "5. Keep the call to action of the original email in callToAction",
                "6. Put notes on what you changed in personalizationNotes",
            ],
            JSON_FORMAT_RULES.format(tone=tone, call_to_action="The call to action").splitlines(),
        )
        logger.info("Improving email")
        return await self.extractor.extract(prompt, OutreachMessage, known_fields={"tone": tone})

    async def generate_bulk_emails(
        self,
        contacts: Sequence[OutreachContact],
        tone: str = DEFAULT_TONE,
        purpose: str = DEFAULT_PURPOSE,
        sender_info: Optional[SenderInfo] = None,
        additional_context: Optional[str] = None,
        call_to_action: Optional[str] = None,
    ) -> List[Tuple[OutreachContact, OutreachMessage]]:
        """
        Generate emails for many contacts concurrently.

        Contacts whose generation fails are dropped; the rest keep input order.
        """
        _check_tone(tone)
        run_id = uuid.uuid4().hex
        branches = {
            f"{index}:{contact.name}": self.generate_email(
                contact,
                tone=tone,
                purpose=purpose,
                sender_info=sender_info,
                additional_context=additional_context,
                call_to_action=call_to_action,
                run_id=run_id,
            )
            for index, contact in enumerate(contacts)
        }
        outcomes = await gather_branches(branches)

        paired = []
        for contact, outcome in zip(contacts, outcomes.values()):
            if outcome.ok:
                paired.append((contact, outcome.value))
        dropped = len(contacts) - len(paired)
        if dropped:
            get_logger(__name__, run_id=run_id, component="outreach").warning(
                f"Dropped {dropped} of {len(contacts)} contacts after generation failures"
            )
        return paired

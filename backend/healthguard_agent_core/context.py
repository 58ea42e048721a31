from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable

from memory.time_utils import to_iso, utc_now

from .consent import ConsentFilter
from .models import (
    CONDITIONS,
    DEMOGRAPHICS,
    LABS,
    MEDICATIONS,
    RESEARCH_SHARING,
    ConsentPolicy,
    HealthRecord,
    Location,
    Profile,
)


DISCLAIMER = "I am an AI, not a doctor. Please consult a medical professional."

_FRAGMENT_ORDER = (DEMOGRAPHICS, CONDITIONS, MEDICATIONS, LABS, RESEARCH_SHARING)

_PREAMBLE = "You are HealthGuard, an advanced, empathetic, and medically aware AI health assistant."

_SAFETY_DIRECTIVE = (
    "SYSTEM DIRECTIVE: EXTREME CONTEXT AWARENESS",
    "You must actively synthesize all provided user data (Profile, Conditions, Meds, Labs) "
    "to provide highly personalized safety checks and advice.",
    "- Before answering, cross-reference the user's conditions, medications and dietary restrictions.",
    "- If a user asks about a food, check their medications for interactions AND their "
    "conditions/dietary restrictions.",
    "- If a user reports a symptom, cross-reference with known side effects of their current medications.",
)


def _location_text(location: Location) -> str:
    if location.city:
        return location.city
    if location.lat is None or location.lng is None:
        return "Unknown"
    return f"Lat: {location.lat}, Lng: {location.lng}"


class ContextAssembler:
    def __init__(self, clock: Callable[[], datetime] = utc_now, consent_filter: ConsentFilter | None = None) -> None:
        self.clock = clock
        self.consent_filter = consent_filter or ConsentFilter()

    def assemble(self, profile: Profile, policy: ConsentPolicy, records: Iterable[HealthRecord]) -> str:
        records = list(records)
        language = profile.language or "English"
        fragments = [self.consent_filter.filter(category, policy, records, profile) for category in _FRAGMENT_ORDER]
        lines = [
            _PREAMBLE,
            "",
            *_SAFETY_DIRECTIVE,
            "",
            "USER PROFILE CONTEXT (Access controlled by Patient Consent):",
            *fragments,
            f"Dietary Restrictions: {profile.dietary_restrictions or 'None'}",
            f"Location: {_location_text(profile.location)} (Used for local resource finding).",
            "",
            "YOUR RESPONSIBILITIES:",
            "1. RESEARCH FIRST: Use the Google Search tool to find the most up-to-date medical info, "
            "guidelines, outbreaks, or drug interactions before answering medical queries.",
            f'2. SAFETY DISCLAIMER: ALWAYS start or end with: "{DISCLAIMER}"',
            f"3. LANGUAGE: Tailor your response to the user's language preference ({language}).",
            "4. TOOLS: Use 'createReminder' for scheduling. Use 'googleSearch' for information.",
            "5. CONTINUITY: Remember past turns in the conversation.",
            "6. PRIVACY: Respect withheld data.",
            "7. ANALYSIS: Analyze attached reports carefully.",
            "",
            f"CURRENT TIME: {to_iso(self.clock())}",
        ]
        return "\n".join(lines)

from __future__ import annotations

from typing import Iterable

from .models import (
    CONDITIONS,
    DEMOGRAPHICS,
    LABS,
    MEDICATIONS,
    RESEARCH_SHARING,
    ConsentPolicy,
    HealthRecord,
    Profile,
)


WITHHELD_SENTINELS = {
    DEMOGRAPHICS: "Demographics withheld by user privacy settings.",
    CONDITIONS: "Condition history withheld by user privacy settings.",
    MEDICATIONS: "Medication history withheld by user privacy settings.",
    LABS: "Lab results withheld by user privacy settings.",
    RESEARCH_SHARING: "Research sharing withheld by user privacy settings.",
}


def _titles(records: Iterable[HealthRecord], record_category: str) -> str:
    return ", ".join(record.title for record in records if record.category == record_category)


class ConsentFilter:
    """Renders one context fragment per consent category.

    A category is either rendered in full or replaced by its withheld
    sentinel. Records are matched on exact category, so nothing from a
    denied category can surface through another fragment.
    """

    def filter(
        self,
        category: str,
        policy: ConsentPolicy,
        records: Iterable[HealthRecord],
        profile: Profile,
    ) -> str:
        if category not in WITHHELD_SENTINELS:
            raise ValueError(f"Unknown consent category: {category}")
        if not policy.allows(category):
            return WITHHELD_SENTINELS[category]
        records = list(records)
        if category == DEMOGRAPHICS:
            return self._demographics(profile)
        if category == CONDITIONS:
            return f"Known Conditions: {profile.conditions or 'None'}. Vault Records: {_titles(records, 'condition')}"
        if category == MEDICATIONS:
            return f"Current Medication: {self._medication(profile)}. Vault Records: {_titles(records, 'medication')}"
        if category == LABS:
            labs = "; ".join(
                f"{record.title}: {record.value or 'N/A'}" for record in records if record.category == "lab"
            )
            return f"Recent Labs: {labs}"
        return "Research sharing: permitted for de-identified use."

    @staticmethod
    def _demographics(profile: Profile) -> str:
        return (
            f"Name: {profile.name or 'User'}, "
            f"Age: {profile.age or 'Unknown'}, "
            f"Language: {profile.language or 'English'}"
        )

    @staticmethod
    def _medication(profile: Profile) -> str:
        if not profile.medication_name:
            return "None listed"
        details = [f"{profile.medication_name} ({profile.dosage or 'Dosage N/A'})"]
        if profile.frequency:
            details.append(profile.frequency)
        if profile.medication_instructions:
            details.append(profile.medication_instructions)
        return ", ".join(details)

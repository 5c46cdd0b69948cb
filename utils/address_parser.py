"""UK address parsing utilities."""

import re


class UKAddressParser:
    """Parser for the free-text addresses UK portals display."""

    # Full postcode, e.g. "M1 4BT", "SW1A 1AA", "EC2V 7HH"
    POSTCODE_PATTERN = re.compile(
        r"\b(?P<postcode>[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2})\b",
        re.IGNORECASE,
    )

    # Outward code only, as listed on search cards, e.g. "M14", "SW1A", "LS6"
    OUTWARD_CODE_PATTERN = re.compile(
        r"^(?P<outward>[A-Z]{1,2}\d[A-Z\d]?)$",
        re.IGNORECASE,
    )

    def extract_postcode(self, address_text: str) -> str:
        """
        Best-effort postcode from the tail of an address.

        Prefers a full or outward postcode; otherwise falls back to the last
        comma-separated segment, which is what the portals put there.
        """
        if not address_text:
            return ""

        matches = list(self.POSTCODE_PATTERN.finditer(address_text))
        if matches:
            return self._format_postcode(matches[-1].group("postcode"))

        tail = address_text.split(",")[-1].strip()
        for token in reversed(tail.split()):
            if self.OUTWARD_CODE_PATTERN.match(token) and any(c.isdigit() for c in token):
                return token.upper()
        return tail

    def _format_postcode(self, postcode: str) -> str:
        """Upper-case and put the single space before the inward code."""
        compact = re.sub(r"\s+", "", postcode).upper()
        return f"{compact[:-3]} {compact[-3:]}"

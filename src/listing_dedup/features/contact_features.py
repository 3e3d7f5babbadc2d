"""
Seller and contact relation analysis.

Detects whether two listings were posted by the same or related sellers
using seller names, agency names, phone numbers and e-mails found in the
seller fields and the description text.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Set

from ..models import Listing, SellerType

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r'(?:\+7|8)?[\s\-()]*\d(?:[\s\-()]*\d){9,}')
EMAIL_PATTERN = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')
AGENCY_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r'estate', r'недвижимость', r'риэлт', r'агент', r'брокер', r'консультант')
]
_PARENTHESIS = re.compile(r'\(([^)]+)\)')
_NAME_JUNK = re.compile(r'[^\w\s]')

RELATION_CONFIDENCE = {
    'same_seller': 1.0,
    'same_phone': 0.9,
    'same_email': 0.8,
    'same_agency': 0.8,
    'agent_owner_pair': 0.7,
    'different_agents': 0.5,
}


@dataclass
class ContactInfo:
    phones: Set[str] = field(default_factory=set)
    emails: Set[str] = field(default_factory=set)
    seller_name: Optional[str] = None


@dataclass
class SellerRelation:
    related: bool = False
    confidence: float = 0.0
    reason: str = 'no_relation'
    details: Dict[str, str] = field(default_factory=dict)


def normalize_phone(raw: str) -> str:
    """Canonical digit form: Russian numbers become 11 digits starting with 8."""
    digits = re.sub(r'\D', '', raw)
    if len(digits) == 11 and digits[0] in '78':
        return '8' + digits[1:]
    if len(digits) == 10:
        return '8' + digits
    return digits


def normalize_name(name: Optional[str]) -> str:
    if not name:
        return ''
    return ' '.join(_NAME_JUNK.sub('', name.lower()).split())


class ContactRelationAnalyzer:
    """Extracts contact signals and scores the relation between two sellers."""

    def extract_phones(self, text: Optional[str]) -> Set[str]:
        if not text:
            return set()
        phones = (normalize_phone(match) for match in PHONE_PATTERN.findall(text))
        return {phone for phone in phones if len(phone) >= 10}

    def extract_emails(self, text: Optional[str]) -> Set[str]:
        if not text:
            return set()
        return {email.lower() for email in EMAIL_PATTERN.findall(text)}

    def analyze_contacts(self, listing: Listing) -> ContactInfo:
        """Phones and e-mails from the description, seller name and seller phone fields."""
        seller = listing.seller
        text = ' '.join(part for part in (listing.description, seller.name, seller.phone) if part)
        emails = self.extract_emails(text)
        if seller.email:
            emails |= self.extract_emails(seller.email) or {seller.email.lower()}
        return ContactInfo(phones=self.extract_phones(text), emails=emails, seller_name=seller.name)

    def extract_agency_name(self, seller_name: Optional[str]) -> Optional[str]:
        """
        Agency name from a seller name: the parenthesised part when it looks
        like an agency, otherwise up to three significant words of a name
        containing an agency keyword.
        """
        if not seller_name:
            return None
        name = seller_name.lower()

        bracket = _PARENTHESIS.search(name)
        if bracket and any(p.search(bracket.group(1)) for p in AGENCY_PATTERNS):
            return bracket.group(1).strip()

        for pattern in AGENCY_PATTERNS:
            if pattern.search(name):
                words = [w for w in name.split() if pattern.search(w) or len(w) > 4]
                return ' '.join(words[:3]) or None
        return None

    def compare_contacts(self, contacts_a: ContactInfo, contacts_b: ContactInfo) -> SellerRelation:
        """Shared phone beats shared e-mail."""
        if contacts_a.phones & contacts_b.phones:
            return SellerRelation(True, RELATION_CONFIDENCE['same_phone'], 'same_phone')
        if contacts_a.emails & contacts_b.emails:
            return SellerRelation(True, RELATION_CONFIDENCE['same_email'], 'same_email')
        return SellerRelation(reason='no_contact_match')

    def analyze(self, listing_a: Listing, listing_b: Listing) -> SellerRelation:
        """
        Relation between the sellers of two listings.

        Never raises: missing data simply yields no relation.
        """
        seller_a, seller_b = listing_a.seller, listing_b.seller

        name_a, name_b = normalize_name(seller_a.name), normalize_name(seller_b.name)
        if name_a and name_a == name_b:
            return SellerRelation(True, RELATION_CONFIDENCE['same_seller'], 'same_seller')

        relation = SellerRelation()
        types = {seller_a.type, seller_b.type}
        if types == {SellerType.AGENT.value, SellerType.OWNER.value}:
            relation = SellerRelation(True, RELATION_CONFIDENCE['agent_owner_pair'], 'agent_owner_pair')
        elif seller_a.type == seller_b.type == SellerType.AGENT.value:
            agency_a = self.extract_agency_name(seller_a.name)
            agency_b = self.extract_agency_name(seller_b.name)
            if agency_a and agency_a == agency_b:
                relation = SellerRelation(True, RELATION_CONFIDENCE['same_agency'], 'same_agency',
                                          details={'agency': agency_a})
            elif seller_a.name and seller_b.name:
                relation = SellerRelation(True, RELATION_CONFIDENCE['different_agents'], 'different_agents')

        contact_relation = self.compare_contacts(self.analyze_contacts(listing_a),
                                                 self.analyze_contacts(listing_b))
        if contact_relation.related:
            relation.related = True
            relation.confidence = max(relation.confidence, contact_relation.confidence)
            relation.reason = contact_relation.reason

        return relation

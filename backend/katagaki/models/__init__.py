from katagaki.models.category import Category
from katagaki.models.proposal import Proposal, ProposalStatus
from katagaki.models.right import Right
from katagaki.models.sequence import OfficialNumberSequence
from katagaki.models.title import PriceTier, Title, TitleStatus
from katagaki.models.user import User, UserRole

__all__ = [
    "Category",
    "Proposal", "ProposalStatus",
    "Right",
    "OfficialNumberSequence",
    "Title", "TitleStatus", "PriceTier",
    "User", "UserRole",
]

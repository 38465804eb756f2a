from katagaki.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from katagaki.schemas.checkout import CheckoutSessionCreate, CheckoutSessionResponse, StripeEvent
from katagaki.schemas.proposal import ProposalCreate, ProposalResponse, ProposalReview, ProposalReviewResponse
from katagaki.schemas.right import HeldRightResponse, RightResponse, RightState
from katagaki.schemas.stats import AdminStats
from katagaki.schemas.title import TitleCreate, TitleHolder, TitleListResponse, TitleResponse, TitleUpdate
from katagaki.schemas.user import AdminUserResponse, ProfileUpdate, RoleUpdate, UserResponse

__all__ = [
    "CategoryCreate", "CategoryResponse", "CategoryUpdate",
    "CheckoutSessionCreate", "CheckoutSessionResponse", "StripeEvent",
    "ProposalCreate", "ProposalResponse", "ProposalReview", "ProposalReviewResponse",
    "HeldRightResponse", "RightResponse", "RightState",
    "AdminStats",
    "TitleCreate", "TitleHolder", "TitleListResponse", "TitleResponse", "TitleUpdate",
    "AdminUserResponse", "ProfileUpdate", "RoleUpdate", "UserResponse",
]

from pydantic import BaseModel


class AdminStats(BaseModel):
    """Totals for the admin dashboard."""

    total_titles: int
    available_titles: int
    total_proposals: int
    pending_proposals: int
    total_users: int
    # Sum of purchased_count * base_price over all titles, in yen
    total_revenue: int

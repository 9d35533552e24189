from salesbooking.schemas.booking import BookSlotRequest, ResolvedTokenResponse, SlotResponse, BookingPageResponse
from salesbooking.schemas.finance import (
    FinanceSubmission,
    ApplicantContext,
    PropertyContext,
    FinanceSubmissionResponse,
)

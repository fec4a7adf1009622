"""Sales service - hand a finalized draft to the sale backend."""
import logging
from typing import Any, Dict, Optional

from pos_draft.exceptions import SubmissionFailureError
from pos_draft.models.payment import PaymentMethod
from pos_draft.services.collaborators import SaleSubmission
from pos_draft.services.sale_draft_service import SaleDraft

logger = logging.getLogger(__name__)


def submit_sale(
    draft: SaleDraft,
    backend: SaleSubmission,
    labels: Optional[Dict[PaymentMethod, str]] = None,
) -> Dict[str, Any]:
    """
    Finalize the draft and post the payload.

    Flow:
    1. finalize() (raises the first violation, draft stays EDITING)
    2. POST the payload to the backend
    3. On success mark the draft SUBMITTED; on rejection reopen it so the
       operator can fix and retry

    Returns:
        The backend response (the created sale).

    Raises:
        BusinessLogicError subclasses: if the draft does not finalize
        SubmissionFailureError: if the backend rejects the sale or the
            submission fails in any other way (the draft is reopened)
    """
    payload = draft.finalize()
    body = payload.to_dict(labels)

    try:
        result = backend.submit(body)
    except SubmissionFailureError as e:
        draft.reopen()
        logger.error(f"[SALE-API] Sale from draft {draft.id} rejected: {e.message}")
        raise
    except Exception as e:
        draft.reopen()
        logger.exception(f"[SALE-API] Sale from draft {draft.id} failed: {str(e)}")
        raise SubmissionFailureError(f"Sale submission failed: {str(e)}") from e

    sale_id = result.get('id') if isinstance(result, dict) else None
    draft.mark_submitted(sale_id)
    logger.info(f"[SALE-API] Draft {draft.id} submitted as sale {sale_id}")
    return result

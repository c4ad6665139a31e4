"""
Admission Webhook Routes

POST /mutate--v1-pod - mutating webhook for pod CREATE (failurePolicy=Ignore).
Every well-formed review is answered with allowed=true; the pod is patched
only when a WorkloadSchedule governs its namespace.
"""

import base64
import json
import logging

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError

from schedule_common.schemas import AdmissionResponse, AdmissionReview

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/mutate--v1-pod")
async def mutate_pod(request: Request):
    """Label new pods and inject WORKLOAD_SCHEDULE_ACTIVE"""
    try:
        review = AdmissionReview.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Rejected malformed AdmissionReview: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="malformed AdmissionReview")

    admission_request = review.request
    if admission_request is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="AdmissionReview has no request")

    response = AdmissionResponse(uid=admission_request.uid, allowed=True)

    if admission_request.operation in (None, "CREATE") and admission_request.object:
        mutator = request.app.state.mutator
        patch = mutator.build_patch(admission_request.object, admission_request.namespace)
        if patch:
            response.patch_type = "JSONPatch"
            response.patch = base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii")

    return AdmissionReview(
        api_version=review.api_version,
        response=response,
    ).model_dump(by_alias=True, exclude_none=True)

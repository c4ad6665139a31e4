"""
Kubernetes Models for the Workload Schedule Operator

Object identity, object metadata and the admission.k8s.io/v1 review envelope.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, NamedTuple


class ObjectKey(NamedTuple):
    """Namespaced identity of a Kubernetes object"""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


class ObjectMeta(BaseModel):
    """
    Subset of metav1.ObjectMeta the operator reads

    Unknown fields (managedFields, ownerReferences, ...) are kept so that a
    full-object update sends them back unchanged.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field(..., description="Object name")
    namespace: Optional[str] = Field(None, description="Object namespace")
    uid: Optional[str] = Field(None)
    resource_version: Optional[str] = Field(None, alias="resourceVersion")
    generation: Optional[int] = Field(None)
    creation_timestamp: Optional[str] = Field(None, alias="creationTimestamp")
    deletion_timestamp: Optional[str] = Field(None, alias="deletionTimestamp")
    finalizers: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    annotations: Dict[str, str] = Field(default_factory=dict)

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.namespace or "", self.name)

    @property
    def is_deleting(self) -> bool:
        return bool(self.deletion_timestamp)

    def has_finalizer(self, finalizer: str) -> bool:
        return finalizer in self.finalizers


class AdmissionRequest(BaseModel):
    """
    admission.k8s.io/v1 AdmissionRequest

    Only the fields the pod mutator needs; `object` stays a raw dict so the
    mutation works on exactly what the API server sent.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    uid: str = Field(..., description="Request UID, echoed in the response")
    namespace: Optional[str] = Field(None)
    operation: Optional[str] = Field(None, description="CREATE, UPDATE, ...")
    object: Optional[Dict[str, Any]] = Field(None, description="Object being admitted")


class AdmissionResponse(BaseModel):
    """admission.k8s.io/v1 AdmissionResponse"""
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    allowed: bool = True
    patch_type: Optional[str] = Field(None, alias="patchType")
    patch: Optional[str] = Field(None, description="Base64-encoded JSON patch")
    warnings: Optional[List[str]] = Field(None)


class AdmissionReview(BaseModel):
    """admission.k8s.io/v1 AdmissionReview envelope"""
    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field("admission.k8s.io/v1", alias="apiVersion")
    kind: str = Field("AdmissionReview")
    request: Optional[AdmissionRequest] = Field(None)
    response: Optional[AdmissionResponse] = Field(None)

from fastapi import APIRouter, HTTPException

from fixlink.models import ServiceListing, UserProfile
from fixlink.services.catalog_store import catalog_store

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/services/{service_id}", response_model=ServiceListing)
def get_service(service_id: str):
    service = catalog_store.get_service(service_id)
    if service is None:
        raise HTTPException(status_code=404, detail={"kind": "not_found", "message": "Service not found"})
    return service


@router.get("/providers/{provider_id}", response_model=UserProfile)
def get_provider(provider_id: str):
    provider = catalog_store.get_user(provider_id)
    if provider is None or provider.role != "provider":
        raise HTTPException(status_code=404, detail={"kind": "not_found", "message": "Provider not found"})
    return provider

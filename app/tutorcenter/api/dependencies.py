#app/tutorcenter/api/dependencies.py
import logging
from fastapi import Request, Depends

from ..db.memory_store import MemoryStore
from ..services.tutor_service import TutorService
from ..services.admin_service import AdminService
from ..services.portal_service import PortalService

logger = logging.getLogger(__name__)


def get_store(request: Request) -> MemoryStore:
    """
    Returns the store created in the application's lifespan.
    """
    return request.app.state.store


def get_tutor_service(store: MemoryStore = Depends(get_store)) -> TutorService:
    """
    Builds a fresh TutorService per request on top of the shared store.
    """
    return TutorService(store=store)


def get_admin_service(store: MemoryStore = Depends(get_store)) -> AdminService:
    return AdminService(store=store)


def get_portal_service(store: MemoryStore = Depends(get_store)) -> PortalService:
    return PortalService(store=store)


async def get_client_ip(request: Request) -> str | None:
    """
    Reads the real client IP from the usual proxy headers (CloudFlare, Nginx),
    falling back to the direct connection address.
    """
    for header_name in ["cf-connecting-ip", "x-real-ip", "x-forwarded-for"]:
        header = request.headers.get(header_name)
        if header:
            # X-Forwarded-For can be "client, proxy1, proxy2"; the leftmost entry is the client.
            client_ip = header.split(",")[0].strip()
            logger.debug(f"Client IP '{client_ip}' taken from header '{header_name}'.")
            return client_ip

    return request.client.host if request.client else None

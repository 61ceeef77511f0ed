from fastapi import APIRouter, Depends, Header, Response, status
from typing import Optional
import uuid

from ...errors import EditConflictError
from ...models import Link
from ...pagination import Filters
from ...schemas import (
    LinkCreate,
    LinkUpdate,
    LinkResponse,
    LinkList,
    MetadataResponse,
    VisitDataResponse,
    TokenResponse,
)
from ..deps import Stores, get_stores, parse_link_id

router = APIRouter()

SORT_SAFELIST = ("id", "name", "created_at", "updated_at")

@router.get("/tokens", response_model=TokenResponse)
async def new_token(stores: Stores = Depends(get_stores)):
    return TokenResponse(token=await stores.links.generate_unique_token())

@router.get("/links", response_model=LinkList)
async def list_links(
    name: str = "",
    page: int = 1,
    page_size: int = 20,
    sort: str = "id",
    stores: Stores = Depends(get_stores),
):
    filters = Filters(page=page, page_size=page_size, sort=sort, sort_safelist=SORT_SAFELIST)
    links, metadata = await stores.links.list(name, filters)
    return LinkList(
        links=[LinkResponse.model_validate(link) for link in links],
        metadata=MetadataResponse.model_validate(metadata),
    )

@router.post("/links", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_in: LinkCreate,
    response: Response,
    stores: Stores = Depends(get_stores),
):
    link = Link(name=link_in.name, destination=str(link_in.destination), token=link_in.token)
    created = await stores.links.insert(link)

    response.headers["Location"] = f"/v1/links/{created.id}"
    return created

@router.get("/links/{link_id}", response_model=LinkResponse)
async def show_link(
    link_id: uuid.UUID = Depends(parse_link_id),
    stores: Stores = Depends(get_stores),
):
    return await stores.links.get(link_id)

@router.patch("/links/{link_id}", response_model=LinkResponse)
async def update_link(
    link_in: LinkUpdate,
    link_id: uuid.UUID = Depends(parse_link_id),
    x_expected_version: Optional[int] = Header(None, alias="X-Expected-Version"),
    stores: Stores = Depends(get_stores),
):
    link = await stores.links.get(link_id)

    # Fail early on a stale client copy; the conditional write still guards the race
    if x_expected_version is not None and x_expected_version != link.version:
        raise EditConflictError()

    stores.links.apply_changes(
        link,
        name=link_in.name,
        destination=str(link_in.destination) if link_in.destination is not None else None,
        token=link_in.token,
    )
    await stores.links.update(link, expected_version=link.version)
    return link

@router.delete("/links/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: uuid.UUID = Depends(parse_link_id),
    stores: Stores = Depends(get_stores),
):
    await stores.links.delete(link_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

@router.get("/links/{link_id}/visits", response_model=VisitDataResponse)
async def link_visits(
    link_id: uuid.UUID = Depends(parse_link_id),
    stores: Stores = Depends(get_stores),
):
    return await stores.analytics.get_data_for(link_id)

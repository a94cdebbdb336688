"""
Shared fixtures: a small pets API declared with route schemas.
"""

from typing import List, Optional

import pytest
from pydantic import BaseModel, Field

from routeschema import (
    Content,
    RequestSchema,
    ResponseSpec,
    Router,
    RouteSchema,
    Server,
    body_parser,
    validation_error_handler,
)
from routeschema.testing import TestClient


class PetParams(BaseModel):
    id: int = Field(..., gt=0, description="Pet identifier")


class PetQuery(BaseModel):
    name: str
    limit: Optional[int] = Field(None, ge=1, le=100, description="Maximum number of pets to return")


class NewPet(BaseModel):
    name: str = Field(..., min_length=1)
    tag: Optional[str] = None


class Pet(BaseModel):
    id: int
    name: str
    tag: Optional[str] = None


class Error(BaseModel):
    error: str


LIST_PETS = RouteSchema(
    request=RequestSchema(query=PetQuery),
    responses={200: ResponseSpec("Matching pets", application_json=List[Pet])},
    operation_id="listPets",
    summary="List pets",
    tags=("pets",),
)

GET_PET = RouteSchema(
    request=RequestSchema(params=PetParams),
    responses={
        200: ResponseSpec("The pet", application_json=Pet),
        404: ResponseSpec("No such pet", application_json=Error),
    },
    operation_id="getPet",
)

CREATE_PET = RouteSchema(
    request=RequestSchema(body=Content(application_json=NewPet, multipart_form_data=NewPet)),
    responses={201: ResponseSpec("Created pet", application_json=Pet)},
    operation_id="createPet",
)


PETS = {1: Pet(id=1, name="Rex", tag="dog"), 2: Pet(id=2, name="Tom", tag="cat")}


def build_pets_router() -> Router:
    router = Router(prefix="/v1")

    @router.get("/pets", LIST_PETS)
    def list_pets(request, response):
        pets = [pet for pet in PETS.values() if pet.name == request.query.name]
        response.json(pets[: request.query.limit or len(pets)])

    @router.get("/pets/:id", GET_PET)
    async def get_pet(request, response):
        pet = PETS.get(request.params.id)
        if pet is None:
            response.status(404).json({"error": "Pet not found"})
            return
        response.json(pet)

    @router.post("/pets", CREATE_PET)
    async def create_pet(request, response):
        response.status(201).json(Pet(id=3, name=request.body.name, tag=request.body.tag))

    return router


@pytest.fixture
def pets_router():
    return build_pets_router()


@pytest.fixture
def server(pets_router):
    server = Server()
    server.use(body_parser(), validation_error_handler)
    server.use_routers(pets_router)
    return server


@pytest.fixture
def client(server):
    return TestClient(server)


@pytest.fixture
def info():
    return {"title": "Pets", "version": "1.0.0"}

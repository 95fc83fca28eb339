"""
JSON body parsing as a dependency.

FastAPI parses declared body parameters before running dependencies, so a
malformed payload would be rejected before authentication. Declaring the
body through json_body() after an auth dependency keeps auth first.
"""

from typing import Type, TypeVar

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def json_body(model: Type[ModelT]):
    """Build a dependency that parses the request body into model."""

    async def parse(request: Request) -> ModelT:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid request format")
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False))

    return parse

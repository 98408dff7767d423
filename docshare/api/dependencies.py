"""
API Dependencies
Common dependencies for API routes
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, Request

from docshare.backend import Services
from docshare.core.exceptions import AuthenticationException, ValidationException
from docshare.db.models import User as UserModel


def get_services(request: Request) -> Services:
    """Services built by the application factory"""
    return request.app.state.backend.services


async def get_current_user(
    authorization: Optional[str] = Header(None),
    services: Services = Depends(get_services),
) -> UserModel:
    """
    Dependency to get current user from the bearer token

    Args:
        authorization: Authorization header with Bearer token
        services: Application services

    Returns:
        Current authenticated user

    Raises:
        AuthenticationException: If the header is missing or the token is rejected
    """
    if not authorization:
        raise AuthenticationException(message="Missing authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise AuthenticationException(message="Invalid authorization header format")

    return await services.accounts.authenticate(token.strip())


def parse_uuid(value: str, field: str) -> uuid.UUID:
    """Validate a path identifier"""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationException(
            message=f"Invalid {field} format",
            details={field: value, "expected_format": "UUID"},
        )

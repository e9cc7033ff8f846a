"""
User Endpoints.

Synchronous user operations go straight to the user RPC service with the
gateway's short call budget. Async creation publishes the request body to
the work queue and answers 202 without waiting for the user to exist.
"""

from fastapi import APIRouter, Request, Response
from pydantic import ValidationError as PydanticValidationError

from userflow.core.exceptions import ValidationError
from userflow.core.logging import get_logger
from userflow.gateway.dependencies import Deps, RequestContext
from userflow.schemas.base import ApiResponse
from userflow.schemas.user import UserCreate, UserMessage, UserUpdate
from userflow.tracing.carrier import MessageCarrier
from userflow.tracing.propagation import inject

logger = get_logger(__name__)

router = APIRouter()
async_router = APIRouter()


@router.get(
    "/{user_id}",
    response_model=ApiResponse[UserMessage],
    summary="Get a user",
)
async def get_user(user_id: str, deps: Deps, ctx: RequestContext) -> ApiResponse[UserMessage]:
    user = await deps.user_client.get_user(user_id, ctx)
    return ApiResponse(data=user)


@router.post(
    "",
    response_model=ApiResponse[UserMessage],
    status_code=201,
    summary="Create a user",
    description="Create a user and wait for the user service to store it.",
)
async def create_user(data: UserCreate, deps: Deps, ctx: RequestContext) -> ApiResponse[UserMessage]:
    user = await deps.user_client.create_user(UserMessage(**data.model_dump()), ctx)
    logger.info("User created", extra={"user_id": user.id})
    return ApiResponse(data=user)


@router.put(
    "/{user_id}",
    response_model=ApiResponse[UserMessage],
    summary="Update a user",
)
async def update_user(
    user_id: str, data: UserUpdate, deps: Deps, ctx: RequestContext,
) -> ApiResponse[UserMessage]:
    user = await deps.user_client.update_user(
        UserMessage(id=user_id, name=data.name, description=data.description), ctx,
    )
    return ApiResponse(data=user)


@router.delete(
    "/{user_id}",
    response_model=ApiResponse[UserMessage],
    summary="Delete a user",
)
async def delete_user(user_id: str, deps: Deps, ctx: RequestContext) -> ApiResponse[UserMessage]:
    user = await deps.user_client.delete_user(user_id, ctx)
    logger.info("User deleted", extra={"user_id": user_id})
    return ApiResponse(data=user)


@async_router.post(
    "/users",
    status_code=202,
    summary="Create a user asynchronously",
    description=(
        "Validate the user JSON and queue it for creation. Responds 202 once the "
        "broker has stored the request; the user is created later."
    ),
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": UserCreate.model_json_schema()}},
        },
    },
)
async def create_user_async(request: Request, deps: Deps, ctx: RequestContext) -> Response:
    body = await request.body()
    try:
        UserCreate.model_validate_json(body)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid user creation request",
            details={"error_count": exc.error_count()},
        ) from exc

    carrier = inject(ctx, MessageCarrier())
    await deps.work_queue.publish(deps.create_user_subject, body, carrier)
    logger.info(
        "User creation queued",
        extra={"subject": deps.create_user_subject, "payload_bytes": len(body)},
    )
    return Response(status_code=202, media_type="application/json")

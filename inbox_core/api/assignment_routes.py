"""
API routes for conversation assignment (pickup, transfer, release, manual
assignment and agent lookups)
"""
import logging
from fastapi import APIRouter, HTTPException, status, Depends, Request
from pydantic import BaseModel, Field
from typing import Optional, List

from inbox_core.api.dependencies import get_assignment_service
from inbox_core.middleware.auth import verify_api_key
from inbox_core.middleware.rate_limiter import limiter, get_rate_limit
from inbox_core.models import AvailableAgent, ConversationAssignment, AgentAvailability
from inbox_core.security.error_handler import raise_not_found
from inbox_core.services import ConversationAssignmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["assignment"])


class PickupRequest(BaseModel):
    agent_id: str = Field(..., description="Agent claiming the conversation")


class TransferRequest(BaseModel):
    target_agent_id: str = Field(..., description="Agent receiving the conversation")
    source_agent_id: Optional[str] = Field(None, description="Agent handing it over (audit only)")


class ReleaseRequest(BaseModel):
    agent_id: Optional[str] = Field(None, description="Agent releasing the conversation")


class ManualAssignRequest(BaseModel):
    target_agent_id: str = Field(..., description="Agent receiving the conversation")
    assigner_id: str = Field(..., description="Owner/admin authorizing the assignment")


class AssignmentResponse(BaseModel):
    success: bool
    conversation_id: str
    agent_id: Optional[str] = None
    message: str
    warning: Optional[str] = None


class AgentListResponse(BaseModel):
    agents: List[AvailableAgent]
    count: int


async def _require_conversation(
    service: ConversationAssignmentService,
    conversation_id: str,
) -> ConversationAssignment:
    assignment = await service.get_conversation_assignment(conversation_id)
    if assignment is None:
        raise_not_found("Conversation", internal_msg=f"conversation {conversation_id} does not exist")
    return assignment


@router.get("/inboxes/{inbox_id}/available-agents", response_model=AgentListResponse)
@limiter.limit(get_rate_limit("read"))
async def list_available_agents(
    request: Request,
    inbox_id: str,
    max_conversations: Optional[int] = None,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AgentListResponse:
    """
    List online agents of an inbox with their open-conversation counts

    Requires: X-API-Key header
    """
    agents = await service.get_available_agents(inbox_id, max_conversations)
    return AgentListResponse(agents=agents, count=len(agents))


@router.post("/conversations/{conversation_id}/auto-assign", response_model=AssignmentResponse)
@limiter.limit(get_rate_limit("write"))
async def auto_assign_conversation(
    request: Request,
    conversation_id: str,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    """
    Route an unassigned conversation to the next agent of its inbox

    Returns success=False (HTTP 200) when no agent is available; the
    conversation then stays in the unassigned pool.
    """
    assignment = await _require_conversation(service, conversation_id)

    if assignment.assigned_agent_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Conversation is already assigned"
        )

    agent_id = await service.auto_assign(assignment.inbox_id, conversation_id)
    if not agent_id:
        return AssignmentResponse(
            success=False,
            conversation_id=conversation_id,
            message="No agent available"
        )

    return AssignmentResponse(
        success=True,
        conversation_id=conversation_id,
        agent_id=agent_id,
        message="Conversation assigned"
    )


@router.post("/conversations/{conversation_id}/pickup", response_model=AssignmentResponse)
@limiter.limit(get_rate_limit("write"))
async def pickup_conversation(
    request: Request,
    conversation_id: str,
    payload: PickupRequest,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    """
    Agent claims an unassigned conversation

    Responses:
        200: Conversation picked up
        403: Agent is not a member of the conversation's inbox
        404: Conversation not found
        409: Another agent already holds the conversation
    """
    assignment = await _require_conversation(service, conversation_id)

    if not await service.check_agent_access(payload.agent_id, conversation_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent has no access to this conversation"
        )

    if assignment.assigned_agent_id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Conversation is already assigned to another agent"
        )

    if not await service.pickup_conversation(conversation_id, payload.agent_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Conversation was assigned to another agent"
        )

    return AssignmentResponse(
        success=True,
        conversation_id=conversation_id,
        agent_id=payload.agent_id,
        message="Conversation picked up"
    )


@router.post("/conversations/{conversation_id}/transfer", response_model=AssignmentResponse)
@limiter.limit(get_rate_limit("write"))
async def transfer_conversation(
    request: Request,
    conversation_id: str,
    payload: TransferRequest,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    """
    Hand a conversation over to another member of the inbox

    The target may be offline; the response then carries a warning.
    """
    await _require_conversation(service, conversation_id)

    if payload.source_agent_id and not await service.check_agent_access(payload.source_agent_id, conversation_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent has no access to this conversation"
        )

    if not await service.check_agent_access(payload.target_agent_id, conversation_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Target agent is not a member of this inbox"
        )

    if not await service.transfer_conversation(conversation_id, payload.target_agent_id, payload.source_agent_id):
        raise_not_found("Conversation", internal_msg=f"conversation {conversation_id} vanished before transfer")

    updated = await service.get_conversation_assignment(conversation_id)
    warning = None
    if updated and updated.assigned_agent_availability != AgentAvailability.ONLINE.value:
        warning = "Target agent is offline"

    return AssignmentResponse(
        success=True,
        conversation_id=conversation_id,
        agent_id=payload.target_agent_id,
        message="Conversation transferred",
        warning=warning
    )


@router.post("/conversations/{conversation_id}/release", response_model=AssignmentResponse)
@limiter.limit(get_rate_limit("write"))
async def release_conversation(
    request: Request,
    conversation_id: str,
    payload: ReleaseRequest,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    """
    Return a conversation to the unassigned pool (no re-routing)
    """
    await _require_conversation(service, conversation_id)

    if payload.agent_id and not await service.check_agent_access(payload.agent_id, conversation_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent has no access to this conversation"
        )

    if not await service.release_conversation(conversation_id, payload.agent_id):
        raise_not_found("Conversation", internal_msg=f"conversation {conversation_id} vanished before release")

    return AssignmentResponse(
        success=True,
        conversation_id=conversation_id,
        message="Conversation released"
    )


@router.post("/conversations/{conversation_id}/assign", response_model=AssignmentResponse)
@limiter.limit(get_rate_limit("write"))
async def manual_assign_conversation(
    request: Request,
    conversation_id: str,
    payload: ManualAssignRequest,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AssignmentResponse:
    """
    Owner/admin assigns a conversation regardless of its current holder
    """
    await _require_conversation(service, conversation_id)

    if not await service.check_agent_access(payload.target_agent_id, conversation_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Target agent is not a member of this inbox"
        )

    if not await service.manual_assign(conversation_id, payload.target_agent_id, payload.assigner_id):
        raise_not_found("Conversation", internal_msg=f"conversation {conversation_id} vanished before manual assignment")

    return AssignmentResponse(
        success=True,
        conversation_id=conversation_id,
        agent_id=payload.target_agent_id,
        message="Conversation assigned"
    )


@router.get("/conversations/{conversation_id}/assignment", response_model=ConversationAssignment)
@limiter.limit(get_rate_limit("read"))
async def get_conversation_assignment(
    request: Request,
    conversation_id: str,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> ConversationAssignment:
    """Current holder of a conversation"""
    return await _require_conversation(service, conversation_id)


@router.get("/conversations/{conversation_id}/transferable-agents", response_model=AgentListResponse)
@limiter.limit(get_rate_limit("read"))
async def list_transferable_agents(
    request: Request,
    conversation_id: str,
    exclude_agent_id: Optional[str] = None,
    api_key: dict = Depends(verify_api_key),
    service: ConversationAssignmentService = Depends(get_assignment_service),
) -> AgentListResponse:
    """
    Active members of the conversation's inbox, excluding the current holder
    unless another agent to exclude is given
    """
    assignment = await _require_conversation(service, conversation_id)

    agents = await service.get_transferable_agents(
        assignment.inbox_id,
        exclude_agent_id or assignment.assigned_agent_id,
    )
    return AgentListResponse(agents=agents, count=len(agents))

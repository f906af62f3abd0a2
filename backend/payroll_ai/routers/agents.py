from fastapi import APIRouter, Depends, HTTPException
from typing import Any, Dict, List

from ..schemas.agents import (
    AgentInfo,
    AgentQueryRequest,
    AgentResponse,
    BrainQueryRequest,
    BrainResponse,
    ResetRequest,
    ScenarioRequest,
)
from ..services.agents import AgentBrain, AgentOrchestrator, get_brain, get_orchestrator, get_rate_limit_status

router = APIRouter(prefix="/agents", tags=["Agents"])


@router.post("/query", response_model=AgentResponse)
async def query_agent(
    req: AgentQueryRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
):
    """
    Ask a single specialist agent.

    - Set `agent_type` (tax, expense, compliance, data, research, reasoning, general)
      to pick the agent; leave it out to route by keywords.
    - Include `conversation_id` to continue a conversation; a follow-up that doesn't
      clearly belong to another agent stays with the previous one.

    An unknown `agent_type` returns confidence 0 with `metadata.error` set.
    """
    if req.conversation_id and not req.agent_type:
        return await orchestrator.continue_conversation(req.conversation_id, req.query)
    return await orchestrator.process_query(req.query, req.agent_type, req.conversation_id)


@router.post("/brain", response_model=BrainResponse)
async def query_brain(
    req: BrainQueryRequest,
    brain: AgentBrain = Depends(get_brain),
):
    """
    Ask every relevant agent at once and get one synthesised answer.

    Agents run concurrently (bounded, with a per-agent timeout); the response lists each
    agent's contribution in selection order plus the reasoning chain.
    """
    return await brain.process_query(req.query, req.conversation_id)


@router.post("/scenarios")
async def analyze_scenarios(
    req: ScenarioRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Compare scenarios step by step with the reasoning agent."""
    reasoning = orchestrator.reasoning_agent
    if reasoning is None:
        raise HTTPException(status_code=503, detail="Reasoning agent is not available")
    try:
        return await reasoning.analyze_scenarios(req.scenarios, req.question)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/available", response_model=List[AgentInfo])
async def available_agents(orchestrator: AgentOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_available_agents()


@router.post("/reset")
async def reset_agents(
    req: ResetRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator),
    brain: AgentBrain = Depends(get_brain),
):
    """Reset one agent's memory, or every agent and the brain when no type is given."""
    if req.agent_type:
        if not orchestrator.reset_agent(req.agent_type):
            raise HTTPException(status_code=404, detail=f"No agent of type {req.agent_type}")
        return {"reset": [req.agent_type]}

    orchestrator.reset_all_agents()
    brain.reset()
    return {"reset": [t.value for t in orchestrator.registry.list_agents()] + ["brain"]}


@router.get("/rate-limit")
async def get_rate_limit():
    """
    Get current rate limit status for LLM API calls.

    Returns daily and per-minute remaining requests.
    """
    return get_rate_limit_status()
